"""
Efficience Analytics - Tâches planifiées (rapports mensuels, expiration du mode dynamique)
Run: cd backend && pytest tests/test_scheduler.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from config import now_utc
from scheduler_service import TaskScheduler, parse_heure, MONTHLY_JOB_ID
from services import report_pipeline
from services.app_settings import activate_dynamic_mode, get_app_settings
from services.errors import InvalidInputError
from services.verification_codes import get_pending, PURPOSE_DYNAMIC_RENEWAL

LAST_DAY = datetime(2025, 1, 31, 20, 0, tzinfo=timezone.utc)


def mail_names(admin_mails):
    return [name for name, _, _ in admin_mails]


class TestParseHeure:
    def test_valid(self):
        assert parse_heure("20:00") == (20, 0)
        assert parse_heure("07:45") == (7, 45)

    @pytest.mark.parametrize("value", ["24:00", "20h", "", "12:60"])
    def test_invalid(self, value):
        with pytest.raises(InvalidInputError):
            parse_heure(value)


class TestSchedule:
    def test_monthly_job_replaced(self):
        scheduler = TaskScheduler()
        scheduler.schedule_monthly("20:00")
        scheduler.schedule_monthly("06:30")
        jobs = [j for j in scheduler.scheduler.get_jobs() if j.id == MONTHLY_JOB_ID]
        assert len(jobs) == 1
        assert "hour='6'" in str(jobs[0].trigger)

    def test_reschedule_while_running(self, run):
        async def scenario():
            scheduler = TaskScheduler()
            scheduler.start("20:00")
            try:
                scheduler.schedule_monthly("06:30")
                return [str(j.trigger) for j in scheduler.scheduler.get_jobs() if j.id == MONTHLY_JOB_ID]
            finally:
                scheduler.scheduler.shutdown(wait=False)

        assert run(scenario()) == ["cron[hour='6', minute='30']"]


class TestMonthlyJob:
    def test_skipped_outside_last_day(self, run, accounts, admin_mails):
        summary = run(TaskScheduler().monthly_reports(datetime(2025, 1, 15, 20, 0)))
        assert summary["skipped"] is True
        assert admin_mails == []

    def test_summary_mailed(self, db, run, accounts, jc_january, outbox, admin_mails):
        summary = run(TaskScheduler().monthly_reports(LAST_DAY))
        assert summary["sent"] == 2
        assert mail_names(admin_mails) == ["send_monthly_summary"]
        assert run(db.reports.count_documents({"email_envoye": True})) == 2

    def test_errors_raise_alert(self, run, accounts, outbox, admin_mails, monkeypatch):
        original = report_pipeline.calculate_kpi

        async def flaky(code, mois):
            if code == "DV":
                raise RuntimeError("boom")
            return await original(code, mois)

        monkeypatch.setattr(report_pipeline, "calculate_kpi", flaky)
        summary = run(TaskScheduler().monthly_reports(LAST_DAY))

        assert summary["consistent"] is False
        assert mail_names(admin_mails) == ["send_monthly_summary", "send_critical_alert"]
        assert admin_mails[1][1][0] == "REPORT_BATCH_ERRORS"

    def test_crash_is_contained(self, run, admin_mails, monkeypatch):
        async def broken(settings, now=None):
            raise RuntimeError("mongo down")

        monkeypatch.setattr("scheduler_service.run_monthly_reports", broken)
        assert run(TaskScheduler().monthly_reports(LAST_DAY)) is None
        assert admin_mails[0][0] == "send_critical_alert"
        assert admin_mails[0][1][0] == "CRON_FAILURE"


class TestDynamicModeCheck:
    def test_nothing_to_do(self, run, admin_mails):
        assert run(TaskScheduler().check_dynamic_mode(now_utc())) is None
        assert admin_mails == []

    def test_expired_issues_renewal_code(self, db, run, admin_mails):
        now = now_utc()
        run(activate_dynamic_mode("admin@test.local", now=now - timedelta(days=16)))

        code = run(TaskScheduler().check_dynamic_mode(now))

        assert code and len(code) == 6
        assert run(get_app_settings())["ai_models_enabled"] is False
        pending = run(get_pending(PURPOSE_DYNAMIC_RENEWAL, "dynamic_mode"))
        assert pending["code"] == code
        assert pending["payload"] == {"target_state": True}
        assert mail_names(admin_mails) == ["send_renewal_code"]
        assert run(db.event_log.count_documents({"action": "dynamic_mode_expired"})) == 1
