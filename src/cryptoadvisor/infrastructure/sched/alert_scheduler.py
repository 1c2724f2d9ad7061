# src/cryptoadvisor/infrastructure/sched/alert_scheduler.py
"""
Runs smart alert passes on a fixed interval from a background thread that
hosts its own asyncio event loop. Overlap is prevented by the service itself:
a tick that lands while a pass is still running is reported as skipped.
"""
import asyncio
import logging
import threading
from typing import Optional

from cryptoadvisor.application.services.alert_service import EvaluationReport, SmartAlertService

log = logging.getLogger(__name__)


class AlertScheduler:
    def __init__(self, alert_service: SmartAlertService, interval_seconds: float = 120):
        self.alert_service = alert_service
        self.interval_seconds = interval_seconds
        self._bg_thread: Optional[threading.Thread] = None
        self._bg_loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[EvaluationReport] = None

    async def run_once(self) -> Optional[EvaluationReport]:
        try:
            report = await self.alert_service.evaluate_all()
        except Exception:
            # The loop must survive a failed pass (e.g. the database is down).
            log.exception("Scheduled smart alert pass failed.")
            return None
        if report.skipped:
            log.info("Scheduled pass skipped: previous pass still running.")
        self.last_report = report
        return report

    async def _run_forever(self) -> None:
        log.info("Alert scheduler running every %ss.", self.interval_seconds)
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    # ---------------------------------------------------------------------
    # Background runner
    # ---------------------------------------------------------------------
    def start(self) -> None:
        """Start the background thread hosting the scheduling loop."""
        if self._bg_thread and self._bg_thread.is_alive():
            log.warning("AlertScheduler already running.")
            return

        def _bg_runner():
            loop = asyncio.new_event_loop()
            self._bg_loop = loop
            asyncio.set_event_loop(loop)
            self._task = loop.create_task(self._run_forever())
            try:
                loop.run_until_complete(self._task)
            except asyncio.CancelledError:
                log.info("Alert scheduler loop cancelled.")
            except Exception:
                log.exception("Alert scheduler background runner crashed.")
            finally:
                loop.close()

        self._bg_thread = threading.Thread(target=_bg_runner, name="alert-scheduler", daemon=True)
        self._bg_thread.start()
        log.info("Alert scheduler background thread started.")

    def stop(self, timeout: float = 5.0) -> None:
        if self._bg_loop and self._task and not self._bg_loop.is_closed():
            self._bg_loop.call_soon_threadsafe(self._task.cancel)
        if self._bg_thread:
            self._bg_thread.join(timeout=timeout)
        log.info("Alert scheduler stopped.")

    @property
    def is_running(self) -> bool:
        return bool(self._bg_thread and self._bg_thread.is_alive())
