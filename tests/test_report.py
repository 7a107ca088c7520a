"""
Tests for the run report: line recording, level filtering and the summary.
"""

import pytest

from autoupdateplugins.download import report as report_module
from autoupdateplugins.download.report import ReportLevel, RunReport

pytestmark = [pytest.mark.unit]


@pytest.fixture
def mock_logger(mocker):
    return mocker.patch.object(report_module, "logger")


class TestRunReportLines:
    def test_tags_and_formatting(self, mock_logger):
        report = RunReport()

        report.info("[## Update run started ##]")
        report.debug("Checking for updates...", "[EssentialsX] ")
        report.warn("Download failed; skipping", "[EssentialsX] ")

        assert report.lines() == [
            "INFO: [## Update run started ##]",
            "DEBUG: [EssentialsX] Checking for updates...",
            "WARN: [EssentialsX] Download failed; skipping",
        ]

    def test_info_lines_are_untagged(self, mock_logger):
        report = RunReport()
        report.log(ReportLevel.INFO, "started", tag="[x] ")
        assert report.entries[0].text == "started"

    def test_all_levels_forwarded_by_default(self, mock_logger):
        report = RunReport()

        report.debug("d")
        report.mark("m", "[a] ")
        report.warn("w")
        report.net_warn("n")

        mock_logger.info.assert_any_call("d")
        mock_logger.info.assert_any_call("[AUP] [a] m")
        mock_logger.warning.assert_any_call("w")
        mock_logger.warning.assert_any_call("n")

    def test_filter_only_affects_forwarding(self, mock_logger):
        report = RunReport(["warn", "NET_WARN"])

        report.debug("hidden")
        report.warn("shown")

        assert [line.text for line in report.entries] == ["hidden", "shown"]
        mock_logger.info.assert_not_called()
        mock_logger.warning.assert_called_once_with("shown")


class TestRunReportStatistics:
    def test_attempted_excludes_unchanged(self):
        report = RunReport()
        report.success = 2
        report.failed = 1
        report.unchanged = 5
        assert report.attempted == 3

    def test_summary_lines(self):
        report = RunReport()
        report.started_at = 100.0
        report.finished_at = 112.4
        report.success = 1
        report.failed = 2
        report.unchanged = 3
        report.requests = 9
        report.bytes_downloaded = 1572864

        assert report.summary_lines() == [
            "  - Elapsed: 12 s",
            "  - failed: 2, updated: 1, unchanged: 3",
            "  - Requests: 9",
            "  - Downloaded: 1.50 MB",
        ]

    def test_summary_omits_zero_failures_and_updates(self):
        report = RunReport()
        report.finish()
        assert report.summary_lines()[1] == "  - unchanged: 0"
