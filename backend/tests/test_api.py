"""
Efficience Analytics - API E2E (TestClient)
Tests: auth, cloisonnement praticien, rapports, import, patients, suppression de compte, mode dynamique.
Run: cd backend && pytest tests/test_api.py -v
"""

import base64
from datetime import timedelta

from tests.conftest import PASSWORD, ADMIN_EMAIL, auth_h


def sent_code(admin_mails):
    name, args, kwargs = admin_mails[-1]
    assert name == "send_verification_code"
    return args[1]


# ═══════════════════════════════════════════════════════════════
# 1. AUTH
# ═══════════════════════════════════════════════════════════════

class TestAuth:
    def test_login_case_insensitive(self, client, accounts):
        r = client.post("/api/auth/login", json={"email": "JC@Test.local", "password": PASSWORD})
        assert r.status_code == 200
        body = r.json()
        assert body["user"]["practitioner_code"] == "JC"
        assert "password" not in body["user"]

        me = client.get("/api/auth/me", headers=auth_h(body["token"]))
        assert me.json()["email"] == "jc@test.local"

    def test_bad_password(self, client, accounts):
        r = client.post("/api/auth/login", json={"email": "jc@test.local", "password": "nope"})
        assert r.status_code == 401

    def test_logout_revokes_session(self, client, accounts):
        token = accounts["jc"]["token"]
        assert client.post("/api/auth/logout", headers=auth_h(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_h(token)).status_code == 401

    def test_no_token(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_change_password(self, client, accounts):
        h = auth_h(accounts["jc"]["token"])
        r = client.put("/api/auth/profile", headers=h, json={"current_password": "faux", "new_password": "nouveau1"})
        assert r.status_code == 400
        r = client.put("/api/auth/profile", headers=h, json={"current_password": PASSWORD, "new_password": "nouveau1"})
        assert r.status_code == 200
        login = client.post("/api/auth/login", json={"email": "jc@test.local", "password": "nouveau1"})
        assert login.status_code == 200


class TestPublic:
    def test_health(self, client):
        assert client.get("/api/health").json()["status"] == "ok"

    def test_public_settings(self, client):
        body = client.get("/api/settings/public").json()
        assert body["import_enabled"] is True
        assert body["dynamic_active"] is False


# ═══════════════════════════════════════════════════════════════
# 2. CLOISONNEMENT
# ═══════════════════════════════════════════════════════════════

class TestIsolation:
    def test_practitioner_cannot_use_admin_routes(self, client, accounts):
        h = auth_h(accounts["jc"]["token"])
        assert client.get("/api/admin/dashboard", headers=h).status_code == 403
        assert client.get("/api/event-log", headers=h).status_code == 403
        assert client.post("/api/reports/generate-all", headers=h, json={"mois": "202501"}).status_code == 403

    def test_practitioner_cannot_generate_for_other(self, client, accounts, jc_january):
        r = client.post("/api/reports/generate", headers=auth_h(accounts["jc"]["token"]),
                        json={"praticien": "DV", "mois": "202501"})
        assert r.status_code == 403

    def test_report_list_forced_to_own_code(self, client, accounts, jc_january):
        admin = auth_h(accounts["admin"]["token"])
        client.post("/api/reports/generate-all", headers=admin, json={"mois": "202501"})

        reports = client.get("/api/reports/list?praticien=DV", headers=auth_h(accounts["jc"]["token"])).json()
        assert [r["praticien"] for r in reports] == ["JC"]
        assert len(client.get("/api/reports/list", headers=admin).json()) == 2

    def test_download_other_report_forbidden(self, client, accounts, jc_january):
        admin = auth_h(accounts["admin"]["token"])
        report_id = client.post("/api/reports/generate", headers=admin,
                                json={"praticien": "DV", "mois": "202501"}).json()["report_id"]
        r = client.get(f"/api/reports/download/{report_id}", headers=auth_h(accounts["jc"]["token"]))
        assert r.status_code == 403

    def test_admin_dashboard(self, client, accounts, jc_january):
        body = client.get("/api/admin/dashboard", headers=auth_h(accounts["admin"]["token"])).json()
        assert sorted(p["code"] for p in body["practitioners"]) == ["DV", "JC"]
        assert body["ca_by_practitioner"][0]["total_facture"] == 28950


# ═══════════════════════════════════════════════════════════════
# 3. RAPPORTS
# ═══════════════════════════════════════════════════════════════

class TestReports:
    def test_generate_and_download(self, client, accounts, jc_january):
        h = auth_h(accounts["jc"]["token"])
        r = client.post("/api/reports/generate", headers=h, json={"praticien": "JC", "mois": "202501"})
        assert r.status_code == 200
        body = r.json()
        assert body["mois"] == "20250101"
        assert body["kpi"]["panier_moyen"] == 371.15
        assert base64.b64decode(body["document_base64"]).startswith(b"<!DOCTYPE html>")

        download = client.get(f"/api/reports/download/{body['report_id']}", headers=h)
        assert download.status_code == 200
        assert download.headers["content-type"].startswith("text/html")
        assert "Rapport_JC_20250101.html" in download.headers["content-disposition"]

    def test_invalid_month(self, client, accounts):
        r = client.post("/api/reports/generate", headers=auth_h(accounts["admin"]["token"]),
                        json={"praticien": "JC", "mois": "janvier"})
        assert r.status_code == 422

    def test_unknown_practitioner(self, client, accounts):
        r = client.post("/api/reports/generate", headers=auth_h(accounts["admin"]["token"]),
                        json={"praticien": "ZZ", "mois": "202501"})
        assert r.status_code == 404

    def test_send_then_nothing_left(self, client, accounts, jc_january, outbox):
        admin = auth_h(accounts["admin"]["token"])
        client.post("/api/reports/generate-all", headers=admin, json={"mois": "202501"})

        first = client.post("/api/reports/send", headers=admin, json={"mois": "202501"})
        assert first.json()["success"] == 2
        second = client.post("/api/reports/send", headers=admin, json={"mois": "202501"})
        assert second.status_code == 404

    def test_available_months(self, client, accounts, jc_january):
        body = client.get("/api/reports/available-months", headers=auth_h(accounts["jc"]["token"])).json()
        assert body == [{"value": "20250101", "label": "Janvier 2025"}]


# ═══════════════════════════════════════════════════════════════
# 4. DONNÉES & PATIENTS
# ═══════════════════════════════════════════════════════════════

class TestData:
    def test_import_upload(self, client, accounts):
        content = "Praticien\tMois\tNb heures\nJC\t202501\t6930\nDV\t202501\t4200\n".encode("utf-8")
        r = client.post("/api/data/import/jours-ouverts", headers=auth_h(accounts["admin"]["token"]),
                        files={"file": ("heures.tsv", content, "text/tab-separated-values")})
        assert r.status_code == 200
        assert r.json()["count"] == 2

        summary = client.get("/api/data/summary", headers=auth_h(accounts["admin"]["token"])).json()
        assert summary["jours_ouverts"] == 2

    def test_import_unknown_kind(self, client, accounts):
        r = client.post("/api/data/import/factures", headers=auth_h(accounts["admin"]["token"]),
                        files={"file": ("x.tsv", b"a\tb\n", "text/plain")})
        assert r.status_code == 400

    def test_import_disabled(self, client, accounts):
        admin = auth_h(accounts["admin"]["token"])
        client.put("/api/admin/settings", headers=admin, json={"import_enabled": False})
        r = client.post("/api/data/import/devis", headers=admin,
                        files={"file": ("x.tsv", b"Praticien\tMois\n", "text/plain")})
        assert r.status_code == 403

    def test_manual_entry(self, client, accounts):
        h = auth_h(accounts["jc"]["token"])
        r = client.post("/api/practitioner/manual-entry", headers=h,
                        json={"type": "devis", "mois": "202501", "data": {"nb_devis": 4, "nb_devis_acceptes": 3}})
        assert r.status_code == 200
        stored = client.get("/api/practitioner/manual-entry/devis/202501", headers=h).json()["data"]
        assert stored["praticien"] == "JC"
        assert stored["nb_devis_acceptes"] == 3

    def test_patients_crud(self, client, accounts):
        h = auth_h(accounts["jc"]["token"])
        created = client.post("/api/practitioner/patients", headers=h,
                              json={"nom": "Martin", "prenom": "Léa"}).json()["patient"]
        assert created["statut"] == "nouveau"

        r = client.put(f"/api/practitioner/patients/{created['id']}", headers=h, json={"statut": "actif"})
        assert r.json()["patient"]["statut"] == "actif"

        listing = client.get("/api/practitioner/patients", headers=h).json()
        assert listing["stats"]["actifs"] == 1

        other = auth_h(accounts["dv"]["token"])
        assert client.delete(f"/api/practitioner/patients/{created['id']}", headers=other).status_code == 404
        assert client.delete(f"/api/practitioner/patients/{created['id']}", headers=h).status_code == 200

    def test_invalid_statut(self, client, accounts):
        r = client.post("/api/practitioner/patients", headers=auth_h(accounts["jc"]["token"]),
                        json={"nom": "Martin", "prenom": "Léa", "statut": "vip"})
        assert r.status_code == 422


# ═══════════════════════════════════════════════════════════════
# 5. ACTIONS SENSIBLES (codes par email)
# ═══════════════════════════════════════════════════════════════

class TestAccountDeletion:
    def test_two_step_deletion(self, client, db, run, accounts, jc_january, admin_mails):
        admin = auth_h(accounts["admin"]["token"])
        user_id = accounts["jc"]["id"]

        r = client.post("/api/admin/deactivate-send-code", headers=admin, json={"user_id": user_id})
        assert r.status_code == 200
        code = sent_code(admin_mails)
        assert admin_mails[-1][1][0] == ADMIN_EMAIL

        wrong = "000000" if code != "000000" else "111111"
        r = client.post("/api/admin/deactivate-confirm", headers=admin, json={"user_id": user_id, "code": wrong})
        assert r.status_code == 400

        r = client.post("/api/admin/deactivate-confirm", headers=admin, json={"user_id": user_id, "code": code})
        assert r.status_code == 200
        assert run(db.users.find_one({"id": user_id})) is None
        assert run(db.analyse_realisation.count_documents({"praticien": "JC"})) == 0
        assert client.get("/api/auth/me", headers=auth_h(accounts["jc"]["token"])).status_code == 401

    def test_admin_cannot_be_deleted(self, client, accounts):
        r = client.post("/api/admin/deactivate-send-code", headers=auth_h(accounts["admin"]["token"]),
                        json={"user_id": accounts["admin"]["id"]})
        assert r.status_code == 403


class TestDynamicModeToggle:
    def test_toggle_off_with_code(self, client, accounts, admin_mails):
        admin = auth_h(accounts["admin"]["token"])
        r = client.post("/api/admin/ai-toggle-send-code", headers=admin, json={"target_state": False})
        assert r.status_code == 200

        r = client.post("/api/admin/ai-toggle-confirm", headers=admin, json={"code": sent_code(admin_mails)})
        assert r.status_code == 200
        assert r.json()["ai_models_enabled"] is False
        assert client.get("/api/settings/public").json()["ai_models_enabled"] is False

    def test_renewal_code_reactivates(self, client, run, accounts, admin_mails):
        from config import now_utc
        from scheduler_service import TaskScheduler
        from services.app_settings import activate_dynamic_mode

        now = now_utc()
        run(activate_dynamic_mode("admin@test.local", now=now - timedelta(days=16)))
        code = run(TaskScheduler().check_dynamic_mode(now))

        r = client.post("/api/admin/ai-toggle-confirm", headers=auth_h(accounts["admin"]["token"]),
                        json={"code": code})
        assert r.status_code == 200
        assert r.json()["dynamic_active"] is True

    def test_bad_code(self, client, accounts):
        r = client.post("/api/admin/ai-toggle-confirm", headers=auth_h(accounts["admin"]["token"]),
                        json={"code": "123456"})
        assert r.status_code == 400

    def test_only_principal_admin(self, client, db, run, accounts, monkeypatch):
        monkeypatch.setattr("routes.auth.PRINCIPAL_ADMIN_EMAIL", "boss@test.local")
        r = client.post("/api/admin/ai-toggle-send-code", headers=auth_h(accounts["admin"]["token"]),
                        json={"target_state": True})
        assert r.status_code == 403


class TestEventLog:
    def test_filters(self, client, accounts, jc_january):
        admin = auth_h(accounts["admin"]["token"])
        client.post("/api/reports/generate", headers=admin, json={"praticien": "JC", "mois": "202501"})
        client.post("/api/practitioner/manual-entry", headers=auth_h(accounts["jc"]["token"]),
                    json={"type": "devis", "mois": "202502", "data": {"nb_devis": 1}})

        body = client.get("/api/event-log?mois=202501", headers=admin).json()
        assert [e["action"] for e in body["events"]] == ["report_generated"]

        body = client.get("/api/event-log?user_filter=JC@TEST", headers=admin).json()
        assert [e["action"] for e in body["events"]] == ["manual_entry"]

        actions = client.get("/api/event-log/actions", headers=admin).json()["actions"]
        assert actions == ["manual_entry", "report_generated"]

        event_id = body["events"][0]["id"]
        assert client.get(f"/api/event-log/{event_id}", headers=admin).json()["praticien"] == "JC"
        assert client.get("/api/event-log/inconnu", headers=admin).status_code == 404
