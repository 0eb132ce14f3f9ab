"""
Profile media matching for archive imports.

An archive's ``account.js`` names the avatar and header by CDN URL, while
the files in ``data/profile_media/`` carry the archive's own names
(often ``{account_id}-{cdn_name}``). Each lookup walks a chain of
strategies and stops at the first hit:

    exact       stored name == CDN file name
    fuzzy       stored basename contains the CDN basename (size suffixes stripped)
    keyword     stored name contains a role keyword (avatar/profile_image, header/banner)
    positional  avatar = first file, header = first file that is not the avatar
"""

import re
from typing import Callable, List, Optional, Protocol, Sequence


class StoredMedia(Protocol):
    file_name: str
    file_path: str


AVATAR_KEYWORDS = ("profile_image", "avatar", "400x400")
HEADER_KEYWORDS = ("header", "banner", "cover", "1500x500")

_SIZE_SUFFIX = re.compile(r"_(?:normal|bigger|mini|400x400|200x200|1500x500|\d+x\d+)$", re.IGNORECASE)


def cdn_file_name(url: Optional[str]) -> Optional[str]:
    """Last path segment of a URL without its query string."""
    if not url:
        return None
    name = url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    return name or None


def media_basename(file_name: str) -> str:
    """Lower-cased name without extension or size suffix."""
    stem = file_name.rsplit(".", 1)[0] if "." in file_name else file_name
    return _SIZE_SUFFIX.sub("", stem).lower()


class ProfileMediaMatcher:
    """
    Picks the stored avatar and header among an archive's profile media.

    Usage:
        matcher = ProfileMediaMatcher(profile_files)
        avatar = matcher.match_avatar(account.avatar_media_url)
        header = matcher.match_header(account.header_media_url, avatar)
    """

    def __init__(self, files: Sequence[StoredMedia]) -> None:
        self.files: List[StoredMedia] = list(files)

    def match_avatar(self, cdn_url: Optional[str]) -> Optional[StoredMedia]:
        return self._first_match(cdn_url, AVATAR_KEYWORDS, exclude=None)

    def match_header(
        self,
        cdn_url: Optional[str],
        avatar: Optional[StoredMedia] = None,
    ) -> Optional[StoredMedia]:
        # A lone file is the avatar, never also the header
        if not cdn_url and len(self.files) < 2:
            return None
        return self._first_match(cdn_url, HEADER_KEYWORDS, exclude=avatar)

    def _first_match(
        self,
        cdn_url: Optional[str],
        keywords: Sequence[str],
        exclude: Optional[StoredMedia],
    ) -> Optional[StoredMedia]:
        candidates = [f for f in self.files if exclude is None or f.file_path != exclude.file_path]
        target = cdn_file_name(cdn_url)

        strategies: List[Callable[[StoredMedia], bool]] = []
        if target:
            target_base = media_basename(target)
            strategies.append(lambda f: f.file_name == target)
            if target_base:
                strategies.append(lambda f: target_base in media_basename(f.file_name))
        strategies.append(lambda f: any(k in f.file_name.lower() for k in keywords))

        for matches in strategies:
            for candidate in candidates:
                if matches(candidate):
                    return candidate

        return candidates[0] if candidates else None
