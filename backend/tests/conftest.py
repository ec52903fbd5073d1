"""
Efficience Analytics - Fixtures de test
Base Mongo en mémoire (mongomock-motor), transports email interceptés, rendu PDF désactivé.
Run: cd backend && pytest tests -v
"""

import asyncio
import sys
import uuid

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import config
import server  # charge routes et services: tous les modules qui référencent config.db
from config import hash_password, now_iso
from services.report_delivery import attachment_filename

PASSWORD = "Efficience2026!"
ADMIN_EMAIL = "admin@test.local"
REPORT_RECIPIENT = "direction@test.local"

_REAL_DB = config.db


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def auth_h(token):
    return {"Authorization": f"Bearer {token}"}


def make_user(role, email, name, **extra):
    return {
        "id": str(uuid.uuid4()),
        "email": email,
        "password": hash_password(PASSWORD),
        "name": name,
        "role": role,
        "is_active": True,
        "is_verified": True,
        "created_at": now_iso(),
        **extra,
    }


@pytest.fixture
def run():
    return _db_op


@pytest.fixture(autouse=True)
def db(monkeypatch):
    """Base isolée par test, injectée dans chaque module qui a importé config.db."""
    mock_db = AsyncMongoMockClient()[f"efficience_test_{uuid.uuid4().hex[:8]}"]
    for module in list(sys.modules.values()):
        if getattr(module, "__dict__", {}).get("db") is _REAL_DB:
            monkeypatch.setattr(module, "db", mock_db)
    return mock_db


@pytest.fixture(autouse=True)
def isolated_reports(monkeypatch, tmp_path):
    monkeypatch.setattr("services.report_pipeline.REPORTS_DIR", tmp_path / "reports")
    monkeypatch.setattr("services.pdf_renderer.PDF_RENDERING_ENABLED", False)
    return tmp_path / "reports"


@pytest.fixture(autouse=True)
def admin_mails(monkeypatch):
    """Intercepte les emails SendGrid; chaque appel est enregistré (nom, args, kwargs)."""
    from email_service import email_service

    calls = []

    def recorder(name):
        def _send(*args, **kwargs):
            calls.append((name, args, kwargs))
            return True
        return _send

    for name in ("send_verification_code", "send_renewal_code", "send_critical_alert", "send_monthly_summary"):
        monkeypatch.setattr(email_service, name, recorder(name))
    return calls


@pytest.fixture
def outbox(monkeypatch):
    """Remplace l'envoi SMTP des rapports; retourne la liste des envois."""
    sent = []

    async def fake_send_report_email(practitioner_code, praticien_nom, mois, mois_label, document, to_email=None):
        filename = attachment_filename(practitioner_code, mois, document.extension)
        sent.append({
            "praticien": practitioner_code,
            "nom": praticien_nom,
            "mois": mois,
            "filename": filename,
            "content_type": document.content_type,
        })
        return {"success": True, "to": to_email or REPORT_RECIPIENT, "filename": filename}

    monkeypatch.setattr("services.report_pipeline.send_report_email", fake_send_report_email)
    return sent


@pytest.fixture
def accounts(db, run, monkeypatch):
    """Un admin (principal) et deux praticiens, avec une session chacun."""
    from routes.auth import create_session

    monkeypatch.setattr("routes.auth.PRINCIPAL_ADMIN_EMAIL", ADMIN_EMAIL)

    users = {
        "admin": make_user("admin", ADMIN_EMAIL, "Admin Test"),
        "jc": make_user("practitioner", "jc@test.local", "Dr Jean Cabon",
                        practitioner_code="JC", cabinet_name="Cabinet Cabon"),
        "dv": make_user("practitioner", "dv@test.local", "Dr Denise Vidal",
                        practitioner_code="DV", cabinet_name="Cabinet Vidal"),
    }
    for user in users.values():
        run(db.users.insert_one(dict(user)))
        user["token"] = run(create_session(user["id"]))
    return users


@pytest.fixture
def jc_january(db, run):
    """Données de janvier 2025 du praticien JC."""
    run(db.analyse_realisation.insert_one({
        "id": str(uuid.uuid4()), "praticien": "JC", "mois": "20250101",
        "nb_patients": 78, "montant_facture": 28950, "montant_encaisse": 23800,
    }))
    run(db.analyse_rendez_vous.insert_one({
        "id": str(uuid.uuid4()), "praticien": "JC", "mois": "20250101",
        "nb_rdv": 0, "duree_totale_rdv": 0, "nb_patients": 0, "nb_nouveaux_patients": 5,
    }))
    run(db.analyse_jours_ouverts.insert_one({
        "id": str(uuid.uuid4()), "praticien": "JC", "mois": "20250101", "nb_heures": 6930,
    }))


@pytest.fixture
def client():
    return TestClient(server.app)
