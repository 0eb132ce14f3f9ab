from dataclasses import dataclass

from socialvault.shared.utils.media_matcher import ProfileMediaMatcher, cdn_file_name, media_basename


@dataclass
class Stored:
    file_name: str
    file_path: str


def stored(name: str) -> Stored:
    return Stored(file_name=name, file_path=f"u/media/b/{name}")


def test_cdn_file_name_strips_query():
    assert cdn_file_name("https://pbs.twimg.com/profile_images/1/abc_400x400.jpg?x=1") == "abc_400x400.jpg"
    assert cdn_file_name(None) is None


def test_media_basename_drops_size_suffix():
    assert media_basename("ABC_400x400.jpg") == "abc"
    assert media_basename("1500x500") == "1500x500"


def test_avatar_matched_by_cdn_basename():
    files = [stored("123-header.jpg"), stored("123-abcdef.jpg")]
    matcher = ProfileMediaMatcher(files)

    avatar = matcher.match_avatar("https://pbs.twimg.com/profile_images/9/abcdef_normal.jpg")

    assert avatar.file_name == "123-abcdef.jpg"


def test_header_never_reuses_avatar():
    files = [stored("avatar.jpg"), stored("banner.jpg")]
    matcher = ProfileMediaMatcher(files)

    avatar = matcher.match_avatar(None)
    header = matcher.match_header(None, avatar)

    assert avatar.file_name == "avatar.jpg"
    assert header.file_name == "banner.jpg"


def test_single_file_is_avatar_only():
    matcher = ProfileMediaMatcher([stored("photo.jpg")])

    avatar = matcher.match_avatar(None)

    assert avatar.file_name == "photo.jpg"
    assert matcher.match_header(None, avatar) is None


def test_no_files_no_match():
    assert ProfileMediaMatcher([]).match_avatar("https://x/a.jpg") is None
