"""
Efficience Analytics - Paramètres applicatifs, mode dynamique, codes de vérification
Run: cd backend && pytest tests/test_settings_codes.py -v
"""

from datetime import timedelta

import pytest

from config import now_utc
from services.app_settings import (
    DEFAULT_APP_SETTINGS,
    get_app_settings,
    update_app_settings,
    activate_dynamic_mode,
    deactivate_dynamic_mode,
    expire_dynamic_mode_if_due,
    is_dynamic_active,
    public_view,
)
from services.errors import InvalidInputError
from services.verification_codes import (
    issue_code,
    get_pending,
    consume_code,
    generate_numeric_code,
    PURPOSE_ACCOUNT_DELETION,
)


class TestAppSettings:
    def test_created_with_defaults(self, db, run):
        settings = run(get_app_settings())
        for key, value in DEFAULT_APP_SETTINGS.items():
            assert settings[key] == value
        run(get_app_settings())
        assert run(db.settings.count_documents({})) == 1

    def test_update_ignores_none(self, run):
        settings = run(update_app_settings({"auto_email": False, "cron_heure": None}, updated_by="admin@test.local"))
        assert settings["auto_email"] is False
        assert settings["cron_heure"] == "20:00"
        assert settings["updated_by"] == "admin@test.local"

    def test_public_view(self, run):
        view = public_view(run(get_app_settings()))
        assert set(view) == {"maintenance_mode", "ai_models_enabled", "import_enabled",
                             "dynamic_active", "dynamic_expires_at"}


class TestDynamicMode:
    def test_activation_lasts_fifteen_days(self, run):
        now = now_utc()
        settings = run(activate_dynamic_mode("admin@test.local", now=now))
        assert is_dynamic_active(settings, now + timedelta(days=14))
        assert not is_dynamic_active(settings, now + timedelta(days=16))

    def test_deactivation(self, run):
        run(activate_dynamic_mode("admin@test.local"))
        settings = run(deactivate_dynamic_mode("admin@test.local"))
        assert settings["ai_models_enabled"] is False
        assert settings["dynamic_expires_at"] is None
        assert not is_dynamic_active(settings)

    def test_expiry(self, run):
        now = now_utc()
        run(activate_dynamic_mode("admin@test.local", now=now - timedelta(days=20)))

        assert run(expire_dynamic_mode_if_due(now)) is True
        assert run(get_app_settings())["ai_models_enabled"] is False
        assert run(expire_dynamic_mode_if_due(now)) is False

    def test_not_yet_due(self, run):
        now = now_utc()
        run(activate_dynamic_mode("admin@test.local", now=now))
        assert run(expire_dynamic_mode_if_due(now + timedelta(days=1))) is False


class TestVerificationCodes:
    def test_numeric_code(self):
        for _ in range(50):
            code = generate_numeric_code()
            assert len(code) == 6 and code.isdigit() and code[0] != "0"

    def test_consume_once(self, run):
        run(issue_code(PURPOSE_ACCOUNT_DELETION, "user-1", timedelta(minutes=10), code="123456"))
        doc = run(consume_code(PURPOSE_ACCOUNT_DELETION, "user-1", "123456"))
        assert doc["target"] == "user-1"
        with pytest.raises(InvalidInputError):
            run(consume_code(PURPOSE_ACCOUNT_DELETION, "user-1", "123456"))

    def test_wrong_code_kept(self, run):
        run(issue_code(PURPOSE_ACCOUNT_DELETION, "user-1", timedelta(minutes=10), code="123456"))
        with pytest.raises(InvalidInputError) as exc:
            run(consume_code(PURPOSE_ACCOUNT_DELETION, "user-1", "654321"))
        assert exc.value.message == "Code incorrect."
        assert run(get_pending(PURPOSE_ACCOUNT_DELETION, "user-1"))["code"] == "123456"

    def test_expired(self, run):
        past = now_utc() - timedelta(hours=1)
        run(issue_code(PURPOSE_ACCOUNT_DELETION, "user-1", timedelta(minutes=10), code="123456", now=past))
        with pytest.raises(InvalidInputError) as exc:
            run(consume_code(PURPOSE_ACCOUNT_DELETION, "user-1", "123456"))
        assert "expiré" in exc.value.message
        assert run(get_pending(PURPOSE_ACCOUNT_DELETION, "user-1")) is None

    def test_reissue_replaces(self, db, run):
        run(issue_code(PURPOSE_ACCOUNT_DELETION, "user-1", timedelta(minutes=10), code="111111"))
        run(issue_code(PURPOSE_ACCOUNT_DELETION, "user-1", timedelta(minutes=10), code="222222"))
        assert run(db.verification_codes.count_documents({})) == 1
        with pytest.raises(InvalidInputError):
            run(consume_code(PURPOSE_ACCOUNT_DELETION, "user-1", "111111"))
