"""
Tests for the version cache and the remote feature fingerprint.
"""

import json

import pytest
import platformdirs

from autoupdateplugins.download.cache import (
    VersionCache,
    compute_feature,
    feature_from_headers,
    get_default_cache_file,
    now_timestamp,
)
from autoupdateplugins.download.fetcher import HttpFetcher
from autoupdateplugins.download.interfaces import VersionCacheRecord
from autoupdateplugins.exceptions import NetworkError

pytestmark = [pytest.mark.unit]


def _record(url="https://dl/a.jar", feature="CL_1000"):
    return VersionCacheRecord(
        file="a.jar", resolved_url=url, feature=feature, last_checked_at="2024-01-01 00:00:00"
    )


class TestFeature:
    def test_content_length_preferred(self):
        headers = {"Content-Length": "1000", "Location": "https://elsewhere"}
        assert feature_from_headers(headers) == "CL_1000"

    def test_location_hash(self):
        first = feature_from_headers({"Location": "https://cdn/a-1.0.jar"})
        second = feature_from_headers({"Location": "https://cdn/a-1.1.jar"})
        assert first.startswith("LH_")
        assert first == feature_from_headers({"Location": "https://cdn/a-1.0.jar"})
        assert first != second

    def test_unknown_feature_without_headers(self):
        first = feature_from_headers({})
        assert first.startswith("??_")

    def test_compute_feature_uses_head(self, mocker, mock_response):
        fetcher = mocker.MagicMock(spec=HttpFetcher)
        response = mock_response(200, headers={"content-length": "42"})
        fetcher.head.return_value = response

        assert compute_feature(fetcher, "https://dl/a.jar") == "CL_42"
        fetcher.head.assert_called_once_with("https://dl/a.jar")
        response.close.assert_called_once()

    def test_compute_feature_on_failure(self, mocker):
        fetcher = mocker.MagicMock(spec=HttpFetcher)
        fetcher.head.side_effect = NetworkError("HEAD request returned HTTP 405", status_code=405)

        assert compute_feature(fetcher, "https://dl/a.jar").startswith("??_")


class TestVersionCache:
    def test_default_location(self):
        assert get_default_cache_file().startswith(platformdirs.user_cache_dir("autoupdateplugins"))
        assert get_default_cache_file().endswith("previous_updates.json")

    def test_put_persists_and_reloads(self, tmp_path):
        cache_file = tmp_path / "previous_updates.json"
        cache = VersionCache(str(cache_file))

        assert cache.put("abc", _record()) is True

        data = json.loads(cache_file.read_text())
        assert data["abc"] == {
            "file": "a.jar",
            "time": "2024-01-01 00:00:00",
            "resolvedUrl": "https://dl/a.jar",
            "feature": "CL_1000",
        }
        reloaded = VersionCache(str(cache_file))
        assert "abc" in reloaded
        assert reloaded.get("abc") == _record()

    def test_missing_file_is_empty(self, tmp_path):
        cache = VersionCache(str(tmp_path / "none.json"))
        assert len(cache) == 0
        assert cache.get("abc") is None

    def test_corrupt_file_is_empty(self, tmp_path):
        cache_file = tmp_path / "previous_updates.json"
        cache_file.write_text("{not json")
        assert len(VersionCache(str(cache_file))) == 0

    def test_non_object_file_is_empty(self, tmp_path):
        cache_file = tmp_path / "previous_updates.json"
        cache_file.write_text("[1, 2, 3]")
        assert len(VersionCache(str(cache_file))) == 0

    def test_malformed_records_are_dropped(self, tmp_path):
        cache_file = tmp_path / "previous_updates.json"
        cache_file.write_text(
            json.dumps(
                {
                    "good": {"resolvedUrl": "https://dl/a.jar", "feature": "CL_1"},
                    "no_feature": {"resolvedUrl": "https://dl/a.jar"},
                    "not_a_dict": "x",
                }
            )
        )

        cache = VersionCache(str(cache_file))

        assert len(cache) == 1
        assert cache.get("good").feature == "CL_1"

    def test_overwrite_record(self, tmp_path):
        cache = VersionCache(str(tmp_path / "c.json"))
        cache.put("abc", _record(feature="CL_1"))
        cache.put("abc", _record(feature="CL_2"))
        assert VersionCache(str(tmp_path / "c.json")).get("abc").feature == "CL_2"

    def test_timestamp_format(self):
        stamp = now_timestamp()
        assert len(stamp) == 19
        assert stamp[4] == "-" and stamp[10] == " " and stamp[13] == ":"
