"""
Core Interfaces for the AutoUpdatePlugins Update Subsystem

This module defines the data structures shared by the resolver, the version
cache and the update pipeline.
"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from autoupdateplugins.config import parse_bool


def _first_present(mapping: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if mapping.get(key) is not None:
            return mapping[key]
    return None


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _optional_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return parse_bool(value, False)


@dataclass
class UpdateEntry:
    """One configured artifact-update job."""

    file: str
    """Target file name, optionally with a directory part"""

    source_url: str
    """The configured source URL (provider page, CI job, or direct link)"""

    file_name_filter: str = ""
    """Regular expression that must fully match the chosen asset's file name"""

    path: Optional[str] = None
    """Directory used for both the install and the alternate file location"""

    update_path: Optional[str] = None
    """Per-entry override of the global `updatePath`"""

    file_path: Optional[str] = None
    """Per-entry override of the global `filePath`"""

    zip_file_check: Optional[bool] = None
    """Per-entry override of the global archive check switch"""

    get_pre_release: bool = False
    """Resolve GitHub sources against the most recent release, pre-releases included"""

    ignore_duplicates: Optional[bool] = None
    """Per-entry switch for the content-hash duplicate check"""

    raw: Dict[str, Any] = field(default_factory=dict)
    """The configured mapping this entry was built from"""

    @classmethod
    def from_config(cls, mapping: Dict[str, Any]) -> "UpdateEntry":
        """
        Build an entry from one element of the configured `list`.

        Accepts `url`/`sourceUrl` for the source and `get`/`fileNameFilter` for the filter.
        Missing required values become empty strings; use is_valid() before processing.

        Parameters:
            mapping (Dict[str, Any]): The configured entry.

        Returns:
            UpdateEntry: The parsed entry.
        """
        file_value = mapping.get("file")
        url_value = _first_present(mapping, "url", "sourceUrl")
        filter_value = _first_present(mapping, "get", "fileNameFilter")
        return cls(
            file="" if file_value is None else str(file_value).strip(),
            source_url="" if url_value is None else str(url_value).strip(),
            file_name_filter="" if filter_value is None else str(filter_value),
            path=_optional_str(mapping.get("path")),
            update_path=_optional_str(mapping.get("updatePath")),
            file_path=_optional_str(mapping.get("filePath")),
            zip_file_check=_optional_bool(mapping.get("zipFileCheck")),
            get_pre_release=parse_bool(mapping.get("getPreRelease"), False),
            ignore_duplicates=_optional_bool(mapping.get("ignoreDuplicates")),
            raw=dict(mapping),
        )

    def is_valid(self) -> bool:
        """Return `True` when both `file` and `source_url` are non-blank."""
        return bool(self.file.strip()) and bool(self.source_url.strip())


def _canonical_value(value: Any) -> Any:
    """
    Normalize a configured value for fingerprinting.

    Strings are trimmed, mappings and lists are normalized recursively, and values
    JSON cannot represent are stringified.
    """
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return {str(k): _canonical_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical_value(v) for v in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return str(value)


def entry_fingerprint(entry: UpdateEntry) -> str:
    """
    Compute the stable version-cache key of an entry.

    The key is the SHA-256 of the entry's configured mapping serialized as JSON with
    sorted keys, so it does not depend on field order, surrounding whitespace, or the
    process it was computed in.

    Parameters:
        entry (UpdateEntry): The entry to fingerprint.

    Returns:
        str: Hex digest identifying the entry.
    """
    source = entry.raw or {
        "file": entry.file,
        "url": entry.source_url,
        "get": entry.file_name_filter,
    }
    canonical = json.dumps(
        _canonical_value(source), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class VersionCacheRecord:
    """What the version cache remembers about the last installed download of an entry."""

    file: str
    resolved_url: str
    feature: str
    last_checked_at: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "file": self.file,
            "time": self.last_checked_at,
            "resolvedUrl": self.resolved_url,
            "feature": self.feature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["VersionCacheRecord"]:
        """
        Rebuild a record from its persisted form.

        Returns:
            Optional[VersionCacheRecord]: The record, or `None` if `resolvedUrl` or `feature` is missing.
        """
        resolved_url = data.get("resolvedUrl")
        feature = data.get("feature")
        if resolved_url is None or feature is None:
            return None
        return cls(
            file=str(data.get("file", "")),
            resolved_url=str(resolved_url),
            feature=str(feature),
            last_checked_at=str(data.get("time", "")),
        )


class EntryOutcome(Enum):
    """Final outcome of processing one entry."""

    SUCCESS = "success"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class EntryResult:
    """Result of processing one entry."""

    entry: Optional[UpdateEntry]
    """The processed entry, or `None` if the list element was not a mapping"""

    outcome: EntryOutcome
    """Success, unchanged, or failed"""

    resolved_url: Optional[str] = None
    """Direct download URL the entry resolved to"""

    provider: Optional[str] = None
    """Display label of the provider that resolved the URL"""

    file_size: Optional[int] = None
    """Size of the downloaded file in bytes"""

    previous_size: Optional[int] = None
    """Size of the file that was replaced, in bytes"""

    error_message: Optional[str] = None
    """Why the entry failed, or why it was left unchanged"""
