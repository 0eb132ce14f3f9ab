import io
import zipfile

import pytest

from socialvault.shared.core.exceptions import InvalidArchiveError
from socialvault.worker.parsers.archive_parser import (
    ArchiveReader,
    archive_relative_path,
    parse_archive_js,
    username_from_link,
)
from tests.archive_builder import build_archive


def test_parse_archive_js_reads_every_assignment():
    content = 'window.YTD.tweets.part0 = [{"a": 1}]\nwindow.YTD.tweets.part1 = [{"b": 2}, {"c": 3}]'

    assert parse_archive_js(content) == [{"a": 1}, {"b": 2}, {"c": 3}]


def test_parse_archive_js_falls_back_to_plain_json():
    assert parse_archive_js('\ufeff[{"a": 1}]') == [{"a": 1}]
    assert parse_archive_js("not json") == []


def test_relative_path_strips_wrapping_folder():
    assert archive_relative_path("twitter-2025/data/tweets.js") == "data/tweets.js"
    assert archive_relative_path("./data/account.js") == "data/account.js"


def test_username_from_link():
    assert username_from_link("https://x.com/friend_8") == "friend_8"
    assert username_from_link("https://twitter.com/intent/user?user_id=7") is None


def test_parse_full_archive(test_settings):
    with ArchiveReader(build_archive(), test_settings) as reader:
        parsed = reader.parse(fallback_username="fallback")

    assert parsed.account.username == "vaultfan"
    assert [t["id"] for t in parsed.tweets] == ["1001", "1002"]
    assert parsed.tweets[0]["tweet_url"] == "https://x.com/vaultfan/status/1001"
    assert parsed.tweets[0]["media"][0]["media_url_https"].endswith("pic1.jpg")
    assert parsed.followers == [{
        "user_id": "7",
        "username": None,
        "name": None,
        "userLink": "https://twitter.com/intent/user?user_id=7",
    }]
    assert parsed.following[0]["username"] == "friend_8"
    assert parsed.likes == [{"tweet_id": "555", "full_text": "liked"}]
    assert parsed.stats == {"tweets": 2, "followers": 1, "following": 1, "likes": 1, "media_files": 3}
    assert sorted(entry.folder for entry in parsed.media) == ["profile_media", "profile_media", "tweets_media"]


def test_nested_archive_folder(test_settings):
    with ArchiveReader(build_archive(prefix="twitter-archive/"), test_settings) as reader:
        parsed = reader.parse()

    assert len(parsed.tweets) == 2
    assert len(parsed.media) == 3


def test_not_a_zip(test_settings):
    with pytest.raises(InvalidArchiveError, match="Failed to extract archive"):
        ArchiveReader(b"definitely not a zip", test_settings)


def test_zip_without_archive_data(test_settings):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("readme.txt", "hello")

    with ArchiveReader(buffer.getvalue(), test_settings) as empty:
        with pytest.raises(InvalidArchiveError, match="doesn't look like a Twitter archive"):
            empty.parse()


def test_media_file_limit(test_settings):
    limited = test_settings.model_copy(update={"MAX_ARCHIVE_MEDIA_FILES": 2})

    with ArchiveReader(build_archive(), limited) as reader:
        with pytest.raises(InvalidArchiveError, match="too many media files"):
            reader.parse()
