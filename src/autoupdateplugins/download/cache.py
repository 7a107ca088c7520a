"""
Version Cache for the AutoUpdatePlugins Update Subsystem

This module persists, per entry fingerprint, the resolved download URL and a
cheap "feature" of the remote artifact from the last installed download, so
a run can skip entries whose upstream has not changed. The cache is purely an
optimization: whenever it cannot be read it is treated as empty.
"""

import hashlib
import json
import os
from datetime import datetime
from typing import Dict, Optional

import platformdirs

from autoupdateplugins.constants import (
    APP_NAME,
    CACHE_TIME_FORMAT,
    FEATURE_CONTENT_LENGTH_PREFIX,
    FEATURE_HASH_LENGTH,
    FEATURE_LOCATION_PREFIX,
    FEATURE_UNKNOWN_PREFIX,
    VERSION_CACHE_FILE,
)
from autoupdateplugins.exceptions import NetworkError
from autoupdateplugins.log_utils import logger

from .fetcher import HttpFetcher
from .files import _atomic_write_json
from .interfaces import VersionCacheRecord


def get_default_cache_file() -> str:
    """
    Get the platform-appropriate location of the version cache file.

    Returns:
        str: `<user cache dir>/autoupdateplugins/previous_updates.json`.
    """
    return os.path.join(platformdirs.user_cache_dir(APP_NAME), VERSION_CACHE_FILE)


def now_timestamp() -> str:
    """Return the current local time in the cache's `YYYY-MM-DD HH:MM:SS` format."""
    return datetime.now().strftime(CACHE_TIME_FORMAT)


def _short_hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:FEATURE_HASH_LENGTH]


def feature_from_headers(headers) -> str:
    """
    Derive the feature fingerprint from response headers.

    Prefers the Content-Length, then a hash of the Location redirect target. Without
    either, a hash of the current time is returned so the entry never looks unchanged.

    Parameters:
        headers: Case-insensitive mapping of response headers.

    Returns:
        str: `CL_<length>`, `LH_<hash>` or `??_<hash>`.
    """
    content_length = headers.get("Content-Length")
    if content_length is not None and str(content_length).strip():
        return f"{FEATURE_CONTENT_LENGTH_PREFIX}{str(content_length).strip()}"

    location = headers.get("Location")
    if location:
        return f"{FEATURE_LOCATION_PREFIX}{_short_hash(str(location))}"

    return unknown_feature()


def unknown_feature() -> str:
    """Return a feature that can never match a stored one."""
    return f"{FEATURE_UNKNOWN_PREFIX}{_short_hash(datetime.now().isoformat())}"


def compute_feature(fetcher: HttpFetcher, url: str) -> str:
    """
    Issue a HEAD request for `url` and derive its feature fingerprint.

    A failed request yields the time-based feature so the entry is downloaded.

    Returns:
        str: The feature fingerprint.
    """
    try:
        response = fetcher.head(url)
    except NetworkError as e:
        logger.debug(f"HEAD request for {url} failed: {e}")
        return unknown_feature()
    try:
        return feature_from_headers(response.headers)
    finally:
        response.close()


class VersionCache:
    """
    Persisted mapping from entry fingerprint to VersionCacheRecord.

    The on-disk format is a flat JSON object keyed by fingerprint whose values hold
    `file`, `time`, `resolvedUrl` and `feature`. Every put() is written through
    atomically before it returns.
    """

    def __init__(self, cache_file: Optional[str] = None):
        """
        Create the cache and load any existing records.

        Parameters:
            cache_file (Optional[str]): Path of the JSON file; the platform default is used when omitted.
        """
        self.cache_file = cache_file or get_default_cache_file()
        self._records: Dict[str, VersionCacheRecord] = {}
        self.load()

    def load(self) -> None:
        """
        (Re)load records from disk.

        Missing, unreadable, non-JSON or non-object files yield an empty cache, and
        malformed records are dropped.
        """
        self._records = {}
        if not os.path.exists(self.cache_file):
            return

        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(
                f"Version cache {self.cache_file} is unreadable ({e}); starting with an empty cache"
            )
            return

        if not isinstance(data, dict):
            logger.warning(
                f"Version cache {self.cache_file} is not a JSON object; starting with an empty cache"
            )
            return

        for fingerprint, raw_record in data.items():
            if not isinstance(raw_record, dict):
                continue
            record = VersionCacheRecord.from_dict(raw_record)
            if record is not None:
                self._records[str(fingerprint)] = record

    def get(self, fingerprint: str) -> Optional[VersionCacheRecord]:
        return self._records.get(fingerprint)

    def put(self, fingerprint: str, record: VersionCacheRecord) -> bool:
        """
        Store a record and persist the whole cache.

        Returns:
            bool: `True` if the cache file was written, `False` otherwise. The in-memory record is kept either way.
        """
        self._records[fingerprint] = record
        return self.save()

    def save(self) -> bool:
        data = {key: record.to_dict() for key, record in self._records.items()}
        return _atomic_write_json(self.cache_file, data)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._records
