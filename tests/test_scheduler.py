# tests/test_scheduler.py
"""
Tests for scheduler job registration and the job functions.

Jobs are registered on a paused scheduler.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from heatmap import scheduler as scheduler_module
from heatmap.utils.context import get_correlation_id


@pytest.fixture
def scheduler():
    """Scheduler started paused, so jobs land in the job store but never fire."""
    scheduler = BackgroundScheduler(timezone="America/New_York")
    scheduler.start(paused=True)
    yield scheduler
    scheduler.shutdown(wait=False)


class TestRegisterJobs:

    def test_both_jobs_registered(self, scheduler):
        scheduler_module.register_jobs(scheduler)

        ids = {job.id for job in scheduler.get_jobs()}
        assert ids == {scheduler_module.DAILY_UPDATE_JOB_ID, scheduler_module.WEEKLY_BACKFILL_JOB_ID}

    def test_jobs_do_not_overlap(self, scheduler):
        scheduler_module.register_jobs(scheduler)

        for job in scheduler.get_jobs():
            assert job.max_instances == 1
            assert job.coalesce is True

    def test_reregistering_replaces(self, scheduler):
        scheduler_module.register_jobs(scheduler)
        scheduler_module.register_jobs(scheduler)
        assert len(scheduler.get_jobs()) == 2

    def test_daily_update_runs_on_weekdays(self, scheduler):
        scheduler_module.register_jobs(scheduler)

        job = scheduler.get_job(scheduler_module.DAILY_UPDATE_JOB_ID)
        fields = {f.name: str(f) for f in job.trigger.fields}
        assert fields["day_of_week"] == "mon-fri"
        assert fields["hour"] == "17"


class TestJobs:

    @contextmanager
    def fake_session_scope(self):
        yield MagicMock(name="session")

    def test_daily_update_job(self):
        seen_ids = []

        def update(db):
            seen_ids.append(get_correlation_id())
            return MagicMock(rows_written=3)

        service = MagicMock()
        service.update_daily_prices.side_effect = update

        with patch.object(scheduler_module, "session_scope", self.fake_session_scope), \
                patch.object(scheduler_module, "get_price_update_service", return_value=service):
            scheduler_module.run_daily_update_job()

        service.update_daily_prices.assert_called_once()
        assert seen_ids[0].startswith("job-daily_price_update-")
        assert get_correlation_id() is None

    def test_weekly_backfill_job(self):
        populator = MagicMock()
        populator.populate_all_history.return_value = 42

        with patch.object(scheduler_module, "session_scope", self.fake_session_scope), \
                patch.object(scheduler_module, "get_backfill_populator", return_value=populator):
            scheduler_module.run_weekly_backfill_job()

        populator.populate_all_history.assert_called_once()


class TestLifecycle:

    def test_start_is_idempotent_and_shutdown_clears(self):
        try:
            first = scheduler_module.start_scheduler()
            second = scheduler_module.start_scheduler()
            assert first is second
            assert first.running
        finally:
            scheduler_module.shutdown_scheduler()

        assert scheduler_module._SCHEDULER is None
