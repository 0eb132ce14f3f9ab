"""
Twitter/X account archive parser.

An archive is a ZIP with JavaScript data files under ``data/``:

    data/account.js             window.YTD.account.part0 = [ {...} ]
    data/tweets.js              (large archives split into tweets-part1.js, ...)
    data/follower.js, data/following.js, data/like.js
    data/tweets_media/          media attached to tweets
    data/profile_media/         avatar and header images

Each data file assigns one or more JSON literals; every literal is decoded
and their items concatenated in part order.

Usage:
======
    with ArchiveReader(archive_bytes, settings) as reader:
        parsed = reader.parse(fallback_username="someone")
        for entry in parsed.media:
            content = reader.read_entry(entry)
"""

import io
import json
import re
import zipfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.core.exceptions import InvalidArchiveError

NOT_AN_ARCHIVE_MESSAGE = "This doesn't look like a Twitter archive. Upload the ZIP file downloaded from Twitter."

METADATA_PATTERNS: Dict[str, re.Pattern] = {
    "account": re.compile(r"^data/account(?:-part\d+)?\.js$", re.IGNORECASE),
    "tweets": re.compile(r"^data/tweets?(?:-part\d+)?\.js$", re.IGNORECASE),
    "followers": re.compile(r"^data/followers?(?:-part\d+)?\.js$", re.IGNORECASE),
    "following": re.compile(r"^data/following(?:-part\d+)?\.js$", re.IGNORECASE),
    "likes": re.compile(r"^data/likes?(?:-part\d+)?\.js$", re.IGNORECASE),
}

MEDIA_FOLDERS = (
    "data/tweets_media",
    "data/community_tweet_media",
    "data/deleted_tweets_media",
    "data/profile_media",
)
PROFILE_MEDIA_FOLDER = "profile_media"

_ASSIGNMENT = re.compile(r"=\s*([\[{])")
_PART_NUMBER = re.compile(r"-part(\d+)\.js$", re.IGNORECASE)
_USERNAME_FROM_LINK = re.compile(r"(?:twitter|x)\.com/(?!intent/)([A-Za-z0-9_]{1,15})", re.IGNORECASE)


def archive_relative_path(name: str) -> str:
    """Entry name from ``data/`` on; archives are sometimes nested in a folder."""
    normalized = name.replace("\\", "/").lstrip("./").strip()
    index = normalized.lower().find("data/")
    return normalized[index:] if index >= 0 else normalized


def part_number(name: str) -> int:
    match = _PART_NUMBER.search(name)
    return int(match.group(1)) if match else 0


def parse_archive_js(content: str) -> List[Any]:
    """
    Decode every JSON literal assigned in an archive data file.

    Falls back to treating the whole file as JSON. Undecodable segments
    are skipped.
    """
    text = content.lstrip("\ufeff")
    decoder = json.JSONDecoder()
    items: List[Any] = []

    position = 0
    while True:
        match = _ASSIGNMENT.search(text, position)
        if not match:
            break
        start = match.start(1)
        try:
            value, end = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            position = start + 1
            continue
        if isinstance(value, list):
            items.extend(value)
        elif isinstance(value, dict):
            items.append(value)
        position = end

    if items:
        return items

    stripped = text.strip()
    if not stripped:
        return []
    try:
        value = json.loads(stripped)
    except json.JSONDecodeError:
        return []
    if isinstance(value, list):
        return value
    return [value] if isinstance(value, dict) else []


def username_from_link(link: str) -> Optional[str]:
    match = _USERNAME_FROM_LINK.search(link or "")
    return match.group(1) if match else None


@dataclass
class ArchiveAccount:
    username: Optional[str] = None
    display_name: Optional[str] = None
    account_id: Optional[str] = None
    avatar_media_url: Optional[str] = None
    header_media_url: Optional[str] = None


@dataclass
class ArchiveMediaEntry:
    archive_path: str
    folder: str
    file_name: str
    size: int

    @property
    def is_profile_media(self) -> bool:
        return self.folder == PROFILE_MEDIA_FOLDER


@dataclass
class ParsedArchive:
    account: ArchiveAccount
    tweets: List[Dict[str, Any]] = field(default_factory=list)
    followers: List[Dict[str, Any]] = field(default_factory=list)
    following: List[Dict[str, Any]] = field(default_factory=list)
    likes: List[Dict[str, Any]] = field(default_factory=list)
    media: List[ArchiveMediaEntry] = field(default_factory=list)

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "tweets": len(self.tweets),
            "followers": len(self.followers),
            "following": len(self.following),
            "likes": len(self.likes),
            "media_files": len(self.media),
        }


class ArchiveReader:
    """
    Reads an archive held in memory.

    parse() and read_entry() are blocking; callers on the event loop run
    them with ``asyncio.to_thread``.
    """

    def __init__(self, content: bytes, settings: Optional[Settings] = None) -> None:
        self.settings = settings or default_settings
        try:
            self.zip = zipfile.ZipFile(io.BytesIO(content))
        except zipfile.BadZipFile as e:
            raise InvalidArchiveError("Failed to extract archive") from e

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.zip.close()

    # ═══════════════════════════════════════════════════════════════════════════
    # PARSE
    # ═══════════════════════════════════════════════════════════════════════════

    def parse(self, fallback_username: Optional[str] = None) -> ParsedArchive:
        """
        Parse account data and index media entries.

        Raises:
            InvalidArchiveError: Not an archive, or over the entry/media limits
        """
        infos = [info for info in self.zip.infolist() if not info.is_dir()]
        if len(infos) > self.settings.MAX_ARCHIVE_ZIP_ENTRIES:
            raise InvalidArchiveError(
                f"Archive contains too many entries ({len(infos)}). "
                f"Limit is {self.settings.MAX_ARCHIVE_ZIP_ENTRIES}."
            )

        buckets: Dict[str, List[zipfile.ZipInfo]] = {name: [] for name in METADATA_PATTERNS}
        media: List[ArchiveMediaEntry] = []
        for info in infos:
            relative = archive_relative_path(info.filename)
            for bucket, pattern in METADATA_PATTERNS.items():
                if pattern.match(relative):
                    buckets[bucket].append(info)
                    break
            else:
                entry = self._media_entry(info, relative)
                if entry is not None:
                    media.append(entry)

        self._check_media_limits(media)

        if not buckets["account"] and not buckets["tweets"]:
            raise InvalidArchiveError(NOT_AN_ARCHIVE_MESSAGE)

        account = self._parse_account(self._items(buckets["account"]))
        author = account.username or fallback_username

        return ParsedArchive(
            account=account,
            tweets=self._parse_tweets(self._items(buckets["tweets"]), author, account),
            followers=self._parse_relations(self._items(buckets["followers"]), "follower"),
            following=self._parse_relations(self._items(buckets["following"]), "following"),
            likes=self._parse_likes(self._items(buckets["likes"])),
            media=media,
        )

    def read_entry(self, entry: ArchiveMediaEntry) -> bytes:
        return self.zip.read(entry.archive_path)

    def _media_entry(self, info: zipfile.ZipInfo, relative: str) -> Optional[ArchiveMediaEntry]:
        for folder in MEDIA_FOLDERS:
            if relative.startswith(folder + "/"):
                file_name = relative.rsplit("/", 1)[-1]
                if not file_name:
                    return None
                return ArchiveMediaEntry(
                    archive_path=info.filename,
                    folder=folder.split("/", 1)[1],
                    file_name=file_name,
                    size=info.file_size,
                )
        return None

    def _check_media_limits(self, media: List[ArchiveMediaEntry]) -> None:
        if len(media) > self.settings.MAX_ARCHIVE_MEDIA_FILES:
            raise InvalidArchiveError(
                f"Archive contains too many media files ({len(media)}). "
                f"Limit is {self.settings.MAX_ARCHIVE_MEDIA_FILES}."
            )
        total = sum(max(0, entry.size) for entry in media)
        if total > self.settings.MAX_ARCHIVE_MEDIA_BYTES:
            raise InvalidArchiveError(
                f"Archive media payload is too large ({total} bytes). "
                f"Limit is {self.settings.MAX_ARCHIVE_MEDIA_BYTES} bytes."
            )

    def _items(self, infos: List[zipfile.ZipInfo]) -> List[Any]:
        items: List[Any] = []
        for info in sorted(infos, key=lambda i: part_number(i.filename)):
            if info.file_size > self.settings.MAX_ARCHIVE_METADATA_ENTRY_BYTES:
                raise InvalidArchiveError(
                    f"Archive entry {archive_relative_path(info.filename)} is too large to import."
                )
            content = self.zip.read(info).decode("utf-8", errors="replace")
            items.extend(parse_archive_js(content))
        return items

    # ═══════════════════════════════════════════════════════════════════════════
    # ITEM MAPPING
    # ═══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def _parse_account(items: List[Any]) -> ArchiveAccount:
        for item in items:
            account = item.get("account") if isinstance(item, dict) else None
            if isinstance(account, dict):
                return ArchiveAccount(
                    username=account.get("username"),
                    display_name=account.get("accountDisplayName"),
                    account_id=account.get("accountId"),
                    avatar_media_url=account.get("avatarMediaUrl"),
                    header_media_url=account.get("headerMediaUrl"),
                )
        return ArchiveAccount()

    @staticmethod
    def _parse_tweets(items: List[Any], author: Optional[str], account: ArchiveAccount) -> List[Dict[str, Any]]:
        tweets = []
        for item in items:
            if not isinstance(item, dict):
                continue
            tweet = item.get("tweet") if isinstance(item.get("tweet"), dict) else item
            tweet_id = tweet.get("id_str") or tweet.get("id")
            if not tweet_id:
                continue
            tweet_id = str(tweet_id)
            entities = tweet.get("extended_entities") or tweet.get("entities") or {}
            tweets.append({
                "id": tweet_id,
                "text": tweet.get("full_text") or tweet.get("text") or "",
                "created_at": tweet.get("created_at"),
                "retweet_count": tweet.get("retweet_count"),
                "favorite_count": tweet.get("favorite_count"),
                "reply_count": tweet.get("reply_count"),
                "in_reply_to_status_id": tweet.get("in_reply_to_status_id_str") or tweet.get("in_reply_to_status_id"),
                "in_reply_to_screen_name": tweet.get("in_reply_to_screen_name"),
                "media": entities.get("media") or [],
                "tweet_url": f"https://x.com/{author}/status/{tweet_id}" if author else None,
                "author": {
                    "username": author,
                    "name": account.display_name or author,
                    "profileImageUrl": account.avatar_media_url,
                },
            })
        return tweets

    @staticmethod
    def _parse_relations(items: List[Any], key: str) -> List[Dict[str, Any]]:
        users = []
        for item in items:
            relation = item.get(key) if isinstance(item, dict) else None
            if not isinstance(relation, dict) or not relation.get("accountId"):
                continue
            account_id = str(relation["accountId"])
            link = relation.get("userLink") or ""
            handle = username_from_link(link)
            users.append({
                "user_id": account_id,
                "username": handle,
                "name": handle,
                "userLink": link or f"https://twitter.com/intent/user?user_id={account_id}",
            })
        return users

    @staticmethod
    def _parse_likes(items: List[Any]) -> List[Dict[str, Any]]:
        likes = []
        for item in items:
            like = item.get("like") if isinstance(item, dict) else None
            if isinstance(like, dict) and like.get("tweetId"):
                likes.append({"tweet_id": str(like["tweetId"]), "full_text": like.get("fullText")})
        return likes
