"""Periodic re-scanning of monitored projects."""

import logging
import threading

from .errors import ScanError
from .models import ScanTrigger
from .registry import MonitorRegistry
from .scanner import ScanOrchestrator

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Background thread that re-scans every registered project once per interval.

    Projects are scanned one after another; a failing project is logged and
    skipped so the rest of the tick still runs.

    Every start() gets its own stop event, so a thread that outlived a
    stop() timeout keeps seeing its own event set and exits after its
    current scan instead of being revived by a later start().
    """

    def __init__(
        self,
        registry: MonitorRegistry,
        orchestrator: ScanOrchestrator,
        interval: float = 300.0,
    ) -> None:
        self.registry = registry
        self.orchestrator = orchestrator
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stop.is_set()
        )

    def run_once(self, stop: threading.Event | None = None) -> int:
        """
        Scan every registered project once.

        Args:
            stop: Event checked between projects; the tick ends early once set

        Returns:
            Number of projects scanned successfully
        """
        entries = self.registry.entries()
        succeeded = 0
        for project_name, manifest in entries:
            if stop is not None and stop.is_set():
                break
            try:
                self.orchestrator.run(manifest, project_name, trigger=ScanTrigger.MONITOR)
                succeeded += 1
            except ScanError as e:
                logger.warning(f"[MONITOR] Failed periodic scan for {project_name}: {e}")
            except Exception:
                logger.exception(f"[MONITOR] Failed periodic scan for {project_name}")
        if entries:
            logger.info(f"[MONITOR] Tick complete: {succeeded}/{len(entries)} projects scanned")
        return succeeded

    def _loop(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval):
            try:
                self.run_once(stop)
            except Exception:
                logger.exception("[MONITOR] Scheduler tick failed")

    def start(self) -> None:
        """Start the background thread. Does nothing if it is already running."""
        if self.running:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._loop,
            args=(self._stop,),
            name="dep-monitor-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Scheduler started, re-scanning every {self.interval:g}s")

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Signal the thread to exit and wait up to timeout for it.

        A thread still busy with a scan after the timeout is kept referenced;
        it exits on its own once that scan returns.
        """
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Scheduler thread still finishing a scan, it will exit afterwards")
            else:
                self._thread = None
        logger.info("Scheduler stopped")
