"""
Run Scheduler

Triggers update runs after a startup delay and then on a fixed cycle, and
serializes manual requests against the running one. All RunState transitions
happen under a single lock; the pipeline itself runs outside of it.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from autoupdateplugins.config import get_config_bool, get_config_int, get_config_list
from autoupdateplugins.constants import (
    CLAMPED_STARTUP_CYCLE,
    DEFAULT_STARTUP_CYCLE,
    DEFAULT_STARTUP_DELAY,
    MIN_STARTUP_CYCLE,
)
from autoupdateplugins.download.pipeline import DownloadPipeline
from autoupdateplugins.download.report import RunReport
from autoupdateplugins.log_utils import logger

ConfigLoader = Callable[[], Dict[str, Any]]
PipelineFactory = Callable[[Dict[str, Any], RunReport], DownloadPipeline]
ReportCallback = Callable[[RunReport], None]


@dataclass
class RunState:
    running: bool = False
    """An update run is in progress"""

    cancel_requested: bool = False
    """A stop was requested for the current run"""

    deferred_reload_requested: bool = False
    """A configuration reload waits for the current run to finish"""


def resolve_schedule(config: Dict[str, Any]) -> Tuple[int, int]:
    """
    Read the startup delay and cycle from the configuration.

    Cycles shorter than MIN_STARTUP_CYCLE seconds are raised to CLAMPED_STARTUP_CYCLE
    unless `disableUpdateCheckIntervalTooLow` is set.

    Returns:
        Tuple[int, int]: (delay seconds, cycle seconds).
    """
    delay = max(0, get_config_int(config, "startupDelay", DEFAULT_STARTUP_DELAY))
    cycle = get_config_int(config, "startupCycle", DEFAULT_STARTUP_CYCLE)
    if cycle < MIN_STARTUP_CYCLE and not get_config_bool(
        config, "disableUpdateCheckIntervalTooLow", False
    ):
        logger.warning(
            f"Update check interval of {cycle} s is too low; using {CLAMPED_STARTUP_CYCLE} s"
        )
        cycle = CLAMPED_STARTUP_CYCLE
    return delay, max(1, cycle)


def _default_pipeline_factory(config: Dict[str, Any], report: RunReport) -> DownloadPipeline:
    return DownloadPipeline(config, report=report)


class RunScheduler:
    """
    Owns the run timer, the RunState and the report of the current or last run.

    A run can be started by the timer or by request_run(). While one is active,
    further requests are rejected unless `disableLook` (or `disableLock`) is set,
    reloads are deferred until it ends and stops cancel it before its next entry.
    """

    def __init__(
        self,
        config_loader: ConfigLoader,
        pipeline_factory: Optional[PipelineFactory] = None,
        on_report: Optional[ReportCallback] = None,
    ):
        """
        Parameters:
            config_loader (ConfigLoader): Returns the current configuration mapping; called on start and on every reload.
            pipeline_factory (Optional[PipelineFactory]): Builds the pipeline for a run from the configuration and its report.
            on_report (Optional[ReportCallback]): Called with the finished report after every run.
        """
        self._config_loader = config_loader
        self._pipeline_factory = pipeline_factory or _default_pipeline_factory
        self._on_report = on_report

        self.state = RunState()
        self.config: Dict[str, Any] = {}
        self.delay = DEFAULT_STARTUP_DELAY
        self.cycle = DEFAULT_STARTUP_CYCLE

        self._lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._timer: Optional[threading.Timer] = None
        self._workers: List[threading.Thread] = []
        self._active_runs = 0
        self._report: Optional[RunReport] = None
        self._stopped = False

    @property
    def report(self) -> Optional[RunReport]:
        """The report of the current run, or of the last one when idle."""
        return self._report

    @property
    def lock_disabled(self) -> bool:
        return get_config_bool(self.config, "disableLook", False) or get_config_bool(
            self.config, "disableLock", False
        )

    def start(self) -> None:
        """Load the configuration and arm the timer for the first run."""
        self._stopped = False
        self.reload_config()
        self._arm_timer(self.delay)
        logger.info(
            f"Update runs scheduled: first in {self.delay} s, then every {self.cycle} s"
        )

    def reload_config(self) -> None:
        self.config = self._config_loader() or {}
        self.delay, self.cycle = resolve_schedule(self.config)

    def _arm_timer(self, interval: float) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._stopped:
                return
            timer = threading.Timer(interval, self._on_timer)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _on_timer(self) -> None:
        self._arm_timer(self.cycle)
        self.request_run()

    def request_run(self, block: bool = False) -> bool:
        """
        Start an update run.

        Parameters:
            block (bool): Run in the calling thread instead of a background thread.

        Returns:
            bool: `True` if the run was started, `False` if another run is active and concurrent runs are not allowed.
        """
        with self._lock:
            if self.state.running and not self.lock_disabled:
                logger.warning("An update run is already in progress; request ignored")
                return False
            if not self.state.running:
                self._cancel_event.clear()
                self.state.cancel_requested = False
            self.state.running = True
            self._active_runs += 1
            report = RunReport(get_config_list(self.config, "logLevel"))
            self._report = report
            config = self.config

        if block:
            self._execute(config, report)
            return True

        worker = threading.Thread(
            target=self._execute,
            args=(config, report),
            name="autoupdateplugins-run",
            daemon=True,
        )
        with self._lock:
            self._workers = [t for t in self._workers if t.is_alive()]
            self._workers.append(worker)
        worker.start()
        return True

    def _execute(self, config: Dict[str, Any], report: RunReport) -> None:
        try:
            pipeline = self._pipeline_factory(config, report)
            pipeline.run(cancel_event=self._cancel_event)
        except Exception as e:
            logger.exception(f"Update run aborted unexpectedly: {e}")
            report.warn(f"Update run aborted: {e}")
        finally:
            report.finish()
            self._finish_run(report)

    def _finish_run(self, report: RunReport) -> None:
        logger.info("[## Update run finished ##]")
        for line in report.summary_lines():
            logger.info(line)

        with self._lock:
            last_run = self._active_runs == 1
            reload_now = last_run and self.state.deferred_reload_requested
            self.state.deferred_reload_requested = (
                self.state.deferred_reload_requested and not reload_now
            )

        if reload_now:
            self._apply_reload()

        with self._lock:
            self._active_runs -= 1
            self.state.running = self._active_runs > 0
            if not self.state.running:
                self.state.cancel_requested = False

        if self._on_report is not None:
            self._on_report(report)

    def _apply_reload(self) -> None:
        self.reload_config()
        self._arm_timer(self.delay)
        logger.info("Configuration reloaded")

    def request_reload(self) -> str:
        """
        Reload the configuration and re-arm the timer.

        Returns:
            str: Acknowledgment; while a run is active the reload is deferred until it finishes.
        """
        with self._lock:
            if self.state.running:
                self.state.deferred_reload_requested = True
                return "An update run is in progress; the configuration will be reloaded when it finishes"
        self._apply_reload()
        return "Configuration reloaded"

    def request_stop(self) -> str:
        """
        Cancel the active run before its next entry.

        Returns:
            str: Acknowledgment.
        """
        with self._lock:
            if not self.state.running:
                return "No update run is in progress"
            self.state.cancel_requested = True
            self._cancel_event.set()
        return "Stop requested; the run will end before the next entry"

    def get_log(self) -> List[str]:
        """Return the formatted log lines of the current or last run."""
        with self._lock:
            report = self._report
        return report.lines() if report is not None else []

    def wait(self, timeout: Optional[float] = None) -> None:
        """Wait for background runs started by request_run() to finish."""
        with self._lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Cancel the timer, stop any active run and wait for it up to `timeout` seconds."""
        with self._lock:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self.state.running:
                self.state.cancel_requested = True
                self._cancel_event.set()
        self.wait(timeout)
