"""
Run Report

Collects the leveled log lines and statistics of a single update run. A new
report is created at the start of every run; the previous one is only kept as
the "last run" snapshot by the scheduler.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from autoupdateplugins.constants import BYTES_PER_MB, MARK_PREFIX, REPORT_LEVELS
from autoupdateplugins.log_utils import logger


class ReportLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    MARK = "MARK"
    WARN = "WARN"
    NET_WARN = "NET_WARN"


@dataclass
class ReportLine:
    level: ReportLevel
    text: str

    def format(self) -> str:
        return f"{self.level.value}: {self.text}"


class RunReport:
    """
    Leveled log and counters for one update run.

    Every line is recorded; only lines whose level is in `log_levels` are also
    forwarded to the process logger.
    """

    def __init__(self, log_levels: Optional[Iterable[str]] = None):
        """
        Create an empty report and start its clock.

        Parameters:
            log_levels (Optional[Iterable[str]]): Level names forwarded to the process logger;
                all levels when omitted or empty.
        """
        levels = [str(level).upper() for level in (log_levels or [])]
        self.log_levels = set(levels or REPORT_LEVELS)
        self.entries: List[ReportLine] = []
        self.success = 0
        self.failed = 0
        self.unchanged = 0
        self.requests = 0
        self.bytes_downloaded = 0
        self.started_at = time.monotonic()
        self.finished_at: Optional[float] = None

    @property
    def attempted(self) -> int:
        """Entries that did real work: successes plus failures."""
        return self.success + self.failed

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def finish(self) -> None:
        self.finished_at = time.monotonic()

    def log(self, level: ReportLevel, text: str, tag: str = "") -> None:
        """
        Record a line and forward it to the logger if its level is enabled.

        Parameters:
            level (ReportLevel): Severity of the line.
            text (str): Message text.
            tag (str): Entry tag such as "[EssentialsX] "; INFO lines are recorded without it.
        """
        line_text = text if level is ReportLevel.INFO else f"{tag}{text}"
        self.entries.append(ReportLine(level, line_text))

        if level.value not in self.log_levels:
            return
        if level is ReportLevel.MARK:
            logger.info(f"{MARK_PREFIX}{line_text}")
        elif level in (ReportLevel.WARN, ReportLevel.NET_WARN):
            logger.warning(line_text)
        else:
            logger.info(line_text)

    def debug(self, text: str, tag: str = "") -> None:
        self.log(ReportLevel.DEBUG, text, tag)

    def info(self, text: str) -> None:
        self.log(ReportLevel.INFO, text)

    def mark(self, text: str, tag: str = "") -> None:
        self.log(ReportLevel.MARK, text, tag)

    def warn(self, text: str, tag: str = "") -> None:
        self.log(ReportLevel.WARN, text, tag)

    def net_warn(self, text: str, tag: str = "") -> None:
        self.log(ReportLevel.NET_WARN, text, tag)

    def lines(self) -> List[str]:
        """Return every recorded line as "LEVEL: <tag><text>"; INFO lines carry no tag."""
        return [entry.format() for entry in self.entries]

    def summary_lines(self) -> List[str]:
        """
        Build the end-of-run summary.

        Returns:
            List[str]: Elapsed time, outcome counts, request count and downloaded megabytes.
        """
        counts = []
        if self.failed:
            counts.append(f"failed: {self.failed}")
        if self.success:
            counts.append(f"updated: {self.success}")
        counts.append(f"unchanged: {self.unchanged}")
        return [
            f"  - Elapsed: {round(self.elapsed_seconds)} s",
            "  - " + ", ".join(counts),
            f"  - Requests: {self.requests}",
            f"  - Downloaded: {self.bytes_downloaded / BYTES_PER_MB:.2f} MB",
        ]
