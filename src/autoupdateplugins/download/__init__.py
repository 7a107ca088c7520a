"""
AutoUpdatePlugins Update Subsystem

Core Components:
- interfaces: Update entries, cache records and per-entry results
- fetcher: HTTP access with proxy, header and TLS settings
- resolvers: Provider-specific resolution of direct download URLs
- cache: Version cache that skips unchanged downloads
- files: Atomic writes, hashing, archive checks and installation
- pipeline: Per-entry update sequence
- report: Leveled run log and statistics
"""

from .cache import VersionCache
from .fetcher import HttpFetcher
from .interfaces import (
    EntryOutcome,
    EntryResult,
    UpdateEntry,
    VersionCacheRecord,
    entry_fingerprint,
)
from .pipeline import DownloadPipeline
from .report import ReportLevel, RunReport
from .resolvers import ProviderKind, SourceResolver, classify_source

__all__ = [
    # Interfaces
    "UpdateEntry",
    "VersionCacheRecord",
    "EntryOutcome",
    "EntryResult",
    "entry_fingerprint",
    # Components
    "HttpFetcher",
    "SourceResolver",
    "ProviderKind",
    "classify_source",
    "VersionCache",
    "DownloadPipeline",
    # Reporting
    "RunReport",
    "ReportLevel",
]
