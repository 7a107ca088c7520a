"""
Update Pipeline

Processes the configured update list one entry at a time: resolve the direct
URL, short-circuit on an unchanged version-cache record, download to the
staging directory, verify archives, skip content-identical files and finally
install the staged file over the destination.
"""

import os
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern
from urllib.parse import urlsplit

from autoupdateplugins.config import (
    get_config_bool,
    get_config_list,
    get_config_str,
)
from autoupdateplugins.constants import (
    BYTES_PER_MB,
    DEFAULT_FILE_PATH,
    DEFAULT_TEMP_PATH,
    DEFAULT_UPDATE_PATH,
    DEFAULT_ZIP_FILE_CHECK_PATTERN,
    UNKNOWN_TAG,
)
from autoupdateplugins.exceptions import (
    ConfigurationError,
    InstallError,
    IntegrityError,
    NetworkError,
    ResolutionError,
)
from autoupdateplugins.log_utils import logger

from .cache import VersionCache, compute_feature, now_timestamp
from .fetcher import HttpFetcher
from .files import (
    calculate_sha256,
    cleanup_file,
    ensure_directory_exists,
    get_file_size,
    install_file,
    is_archive_intact,
)
from .interfaces import (
    EntryOutcome,
    EntryResult,
    UpdateEntry,
    VersionCacheRecord,
    entry_fingerprint,
)
from .report import RunReport
from .resolvers import SourceResolver, classify_source

_DIRECTORY_PART_RX = re.compile(r"(.*/|.*\\)([^/\\]+)$")
_TAG_NAME_RX = re.compile(r"([^/\\]+)\..*$")
_CONTROL_OR_SPACE_RX = re.compile(r"[\s\x00-\x1f\x7f]")


@dataclass
class EntryPaths:
    install_path: str
    """Where the new file is installed"""

    alternate_path: str
    """Where the currently used copy may live (checked for duplicates)"""

    staging_path: str
    """Where the download lands before verification"""


def entry_tag(file_name: str) -> str:
    """
    Build the "[name] " prefix used for an entry's report lines.

    The name is the file's base name without its last extension.
    """
    match = _TAG_NAME_RX.search(file_name)
    return f"[{match.group(1) if match else file_name}] "


def normalize_url(url: str) -> Optional[str]:
    """
    Trim a resolved URL, percent-encode its spaces and check that it is well formed.

    Returns:
        Optional[str]: The normalized URL, or `None` if it is not an http(s) URL with a host.
    """
    candidate = url.strip().replace(" ", "%20")
    if not candidate or _CONTROL_OR_SPACE_RX.search(candidate):
        return None
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return None
    return candidate


def _join_dir(directory: str, file_name: str) -> str:
    ensure_directory_exists(directory)
    return os.path.join(directory, file_name)


class DownloadPipeline:
    """
    Runs the update list against the resolver, version cache and file system.

    Entries are processed strictly in configured order and each entry is finished
    (installed or cleaned up, cache updated) before the next one starts. Every
    failure is turned into a FAILED result; nothing propagates out of run().
    """

    def __init__(
        self,
        config: Dict[str, Any],
        fetcher: Optional[HttpFetcher] = None,
        cache: Optional[VersionCache] = None,
        report: Optional[RunReport] = None,
        resolver: Optional[SourceResolver] = None,
    ):
        """
        Create a pipeline for one run.

        Parameters:
            config (Dict[str, Any]): Global configuration including the `list` of entries.
            fetcher (Optional[HttpFetcher]): HTTP fetcher; built from `config` when omitted.
            cache (Optional[VersionCache]): Version cache; loaded from `cacheFile` or the default location when omitted.
            report (Optional[RunReport]): Report for this run; a new one honoring `logLevel` is created when omitted.
            resolver (Optional[SourceResolver]): Source resolver; built around `fetcher` when omitted.
        """
        self.config = config
        self.report = report or RunReport(get_config_list(config, "logLevel"))
        self.fetcher = fetcher or HttpFetcher(config)
        self.cache = cache or VersionCache(config.get("cacheFile"))
        self.resolver = resolver or SourceResolver(self.fetcher, self.report)

        self.temp_path = get_config_str(config, "tempPath", DEFAULT_TEMP_PATH)
        self.update_path = get_config_str(config, "updatePath", DEFAULT_UPDATE_PATH)
        self.file_path = get_config_str(config, "filePath", DEFAULT_FILE_PATH)
        self.previous_update_enabled = get_config_bool(config, "enablePreviousUpdate", True)
        self.ignore_duplicates = get_config_bool(config, "ignoreDuplicates", True)
        self.zip_file_check = get_config_bool(config, "zipFileCheck", True)
        self.zip_file_pattern = self._compile_zip_pattern(
            get_config_str(config, "zipFileCheckList", DEFAULT_ZIP_FILE_CHECK_PATTERN)
        )

    @staticmethod
    def _compile_zip_pattern(pattern: str) -> Pattern[str]:
        try:
            return re.compile(pattern)
        except re.error as e:
            logger.warning(
                f"Invalid zipFileCheckList pattern {pattern!r} ({e}); using {DEFAULT_ZIP_FILE_CHECK_PATTERN!r}"
            )
            return re.compile(DEFAULT_ZIP_FILE_CHECK_PATTERN)

    def run(
        self,
        entries: Optional[List[Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[EntryResult]:
        """
        Process every configured entry in order.

        Cancellation is checked before each entry; once observed, the remaining entries
        are left untouched and not counted.

        Parameters:
            entries (Optional[List[Any]]): Raw entry mappings; the configured `list` when omitted.
            cancel_event (Optional[threading.Event]): Set to stop before the next entry.

        Returns:
            List[EntryResult]: One result per processed entry.
        """
        report = self.report
        report.info("[## Update run started ##]")
        self.fetcher.reset_request_count()

        results: List[EntryResult] = []
        try:
            raw_list = self._entry_list(entries)
        except ConfigurationError as e:
            report.warn(f"{e}; nothing to do")
            report.finish()
            return results

        if not self.fetcher.verify_tls:
            report.net_warn("[HTTP] TLS certificate verification is disabled (sslVerify: false)")

        for item in raw_list:
            if cancel_event is not None and cancel_event.is_set():
                report.info("Update run stopped")
                break
            result = self.process_item(item)
            self._count(result)
            results.append(result)

        report.requests = self.fetcher.request_count
        report.finish()
        return results

    def _entry_list(self, entries: Optional[List[Any]]) -> List[Any]:
        """
        Raises:
            ConfigurationError: If the update list is missing or not a list.
        """
        raw_list = self.config.get("list") if entries is None else entries
        if not isinstance(raw_list, list):
            raise ConfigurationError(
                "Update list is missing or malformed",
                details=f"expected a list, got {type(raw_list).__name__}",
            )
        return raw_list

    def _count(self, result: EntryResult) -> None:
        if result.outcome is EntryOutcome.SUCCESS:
            self.report.success += 1
        elif result.outcome is EntryOutcome.UNCHANGED:
            self.report.unchanged += 1
        else:
            self.report.failed += 1

    def process_item(self, item: Any) -> EntryResult:
        """
        Process one raw element of the update list.

        Elements that are not mappings fail without side effects. Any unexpected error
        is logged with its traceback, the staged file is removed and the entry fails.
        """
        if not isinstance(item, dict):
            self.report.warn("Update list entry is empty or not a mapping", UNKNOWN_TAG)
            return EntryResult(
                entry=None,
                outcome=EntryOutcome.FAILED,
                error_message="Entry is not a mapping",
            )

        entry = UpdateEntry.from_config(item)
        try:
            return self.process_entry(entry)
        except Exception as e:
            # Catch-all so one entry never ends the run; drop whatever was staged
            logger.exception(f"Unexpected error while updating {entry.file}: {e}")
            self.report.warn(f"Unexpected error: {e}; skipping", entry_tag(entry.file))
            if entry.file:
                cleanup_file(self._staging_path(entry))
            return EntryResult(entry, EntryOutcome.FAILED, error_message=str(e))

    def _staging_path(self, entry: UpdateEntry) -> str:
        match = _DIRECTORY_PART_RX.search(entry.file)
        return os.path.join(self.temp_path, match.group(2) if match else entry.file)

    def derive_paths(self, entry: UpdateEntry) -> EntryPaths:
        """
        Work out install, alternate and staging paths for an entry, creating their directories.

        - `file` with a directory part: that path is both install and alternate path.
        - entry `path`: `<path>/<file>` is both install and alternate path.
        - otherwise: `<updatePath>/<file>` and `<filePath>/<file>`, entry overrides first.

        The staging path is always inside `tempPath`.
        """
        match = _DIRECTORY_PART_RX.search(entry.file)
        if match:
            ensure_directory_exists(match.group(1))
            return EntryPaths(
                install_path=entry.file,
                alternate_path=entry.file,
                staging_path=_join_dir(self.temp_path, match.group(2)),
            )

        staging_path = _join_dir(self.temp_path, entry.file)
        if entry.path is not None:
            install_path = _join_dir(entry.path, entry.file)
            return EntryPaths(install_path, install_path, staging_path)

        return EntryPaths(
            install_path=_join_dir(entry.update_path or self.update_path, entry.file),
            alternate_path=_join_dir(entry.file_path or self.file_path, entry.file),
            staging_path=staging_path,
        )

    def _archive_check_enabled(self, entry: UpdateEntry) -> bool:
        enabled = (
            entry.zip_file_check if entry.zip_file_check is not None else self.zip_file_check
        )
        return enabled and self.zip_file_pattern.search(entry.file) is not None

    def _duplicate_check_enabled(self, entry: UpdateEntry) -> bool:
        entry_enabled = True if entry.ignore_duplicates is None else entry.ignore_duplicates
        return self.ignore_duplicates and entry_enabled

    def verify_archive(self, staging_path: str) -> None:
        """
        Raises:
            IntegrityError: If the staged file is not a valid archive.
        """
        if not is_archive_intact(staging_path):
            raise IntegrityError("Archive is incomplete or corrupt", file_path=staging_path)

    def is_duplicate(self, staging_path: str, paths: EntryPaths) -> bool:
        """Return `True` if the staged file has the same content as an installed copy."""
        staged_hash = calculate_sha256(staging_path)
        if staged_hash is None:
            return False
        for candidate in dict.fromkeys((paths.install_path, paths.alternate_path)):
            if calculate_sha256(candidate) == staged_hash:
                return True
        return False

    def process_entry(self, entry: UpdateEntry) -> EntryResult:
        """
        Run the full update sequence for one entry.

        Returns:
            EntryResult: SUCCESS when a changed file was installed, UNCHANGED on a cache
            hit or identical content, FAILED otherwise.
        """
        report = self.report
        tag = entry_tag(entry.file) if entry.file else UNKNOWN_TAG

        if not entry.is_valid():
            report.warn("Update list entry is missing `file` or `url`", tag)
            return EntryResult(
                entry, EntryOutcome.FAILED, error_message="Missing file or url"
            )

        paths = self.derive_paths(entry)
        provider = classify_source(entry.source_url).label
        report.debug("Checking for updates...", tag)

        try:
            resolved = self.resolver.resolve(
                entry.source_url, entry.file_name_filter, entry.get_pre_release, tag
            )
        except ResolutionError as e:
            report.warn(f"{e.provider or provider}Could not resolve a download URL ({e}); skipping", tag)
            return EntryResult(
                entry, EntryOutcome.FAILED, provider=provider, error_message=str(e)
            )

        url = normalize_url(resolved)
        if url is None:
            report.warn(f"[URI] Invalid or malformed URL: {resolved}", tag)
            return EntryResult(
                entry,
                EntryOutcome.FAILED,
                resolved_url=resolved,
                provider=provider,
                error_message="Malformed URL",
            )

        fingerprint = entry_fingerprint(entry)
        feature = ""
        if self.previous_update_enabled:
            feature = compute_feature(self.fetcher, url)
            record = self.cache.get(fingerprint)
            if record is not None and record.resolved_url == url and record.feature == feature:
                report.mark("[Cache] File is already up to date", tag)
                return EntryResult(
                    entry,
                    EntryOutcome.UNCHANGED,
                    resolved_url=url,
                    provider=provider,
                    error_message="Version cache hit",
                )

        try:
            file_size = self.fetcher.download_to(url, paths.staging_path)
        except NetworkError as e:
            cleanup_file(paths.staging_path)
            report.net_warn(f"[HTTP] {e}", tag)
            report.warn("Download failed; skipping", tag)
            return EntryResult(
                entry, EntryOutcome.FAILED, resolved_url=url, provider=provider, error_message=str(e)
            )
        report.bytes_downloaded += file_size

        if self._archive_check_enabled(entry):
            try:
                self.verify_archive(paths.staging_path)
            except IntegrityError as e:
                cleanup_file(paths.staging_path)
                report.warn("[Zip integrity check] File is incomplete; skipping", tag)
                return EntryResult(
                    entry,
                    EntryOutcome.FAILED,
                    resolved_url=url,
                    provider=provider,
                    file_size=file_size,
                    error_message=str(e),
                )

        if self.previous_update_enabled:
            self.cache.put(
                fingerprint,
                VersionCacheRecord(
                    file=entry.file,
                    resolved_url=url,
                    feature=feature,
                    last_checked_at=now_timestamp(),
                ),
            )

        if self._duplicate_check_enabled(entry) and self.is_duplicate(paths.staging_path, paths):
            report.mark("File is already up to date", tag)
            cleanup_file(paths.staging_path)
            return EntryResult(
                entry,
                EntryOutcome.UNCHANGED,
                resolved_url=url,
                provider=provider,
                file_size=file_size,
                error_message="Identical content",
            )

        previous_size = get_file_size(paths.install_path)
        if previous_size is None:
            previous_size = get_file_size(paths.alternate_path) or 0

        try:
            install_file(paths.staging_path, paths.install_path)
        except InstallError as e:
            report.warn(f"{e}; the download was kept at {paths.staging_path}", tag)
            return EntryResult(
                entry,
                EntryOutcome.FAILED,
                resolved_url=url,
                provider=provider,
                file_size=file_size,
                previous_size=previous_size,
                error_message=str(e),
            )

        report.debug(
            f"Update complete [{previous_size / BYTES_PER_MB:.2f}MB] -> [{file_size / BYTES_PER_MB:.2f}MB]",
            tag,
        )
        return EntryResult(
            entry,
            EntryOutcome.SUCCESS,
            resolved_url=url,
            provider=provider,
            file_size=file_size,
            previous_size=previous_size,
        )
