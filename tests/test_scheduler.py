import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from cryptoadvisor.application.services.alert_service import EvaluationReport
from cryptoadvisor.infrastructure.sched.alert_scheduler import AlertScheduler


def _report(**kwargs) -> EvaluationReport:
    now = datetime.now(timezone.utc)
    return EvaluationReport(started_at=now, finished_at=now, **kwargs)


@pytest.mark.asyncio
async def test_run_once_keeps_last_report():
    service = MagicMock()
    report = _report()
    service.evaluate_all = AsyncMock(return_value=report)
    scheduler = AlertScheduler(service, interval_seconds=60)

    assert await scheduler.run_once() is report
    assert scheduler.last_report is report


@pytest.mark.asyncio
async def test_run_once_survives_failures():
    service = MagicMock()
    service.evaluate_all = AsyncMock(side_effect=RuntimeError("database is down"))
    scheduler = AlertScheduler(service, interval_seconds=60)

    assert await scheduler.run_once() is None
    assert scheduler.last_report is None


def test_background_thread_runs_and_stops():
    service = MagicMock()
    service.evaluate_all = AsyncMock(return_value=_report(skipped=True))
    scheduler = AlertScheduler(service, interval_seconds=0.05)

    scheduler.start()
    try:
        deadline = time.time() + 2
        while service.evaluate_all.await_count < 2 and time.time() < deadline:
            time.sleep(0.02)
        assert scheduler.is_running
    finally:
        scheduler.stop()

    assert service.evaluate_all.await_count >= 2
    assert not scheduler.is_running
