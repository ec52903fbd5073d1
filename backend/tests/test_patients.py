"""
Efficience Analytics - Patients et compteurs compensatoires
Run: cd backend && pytest tests/test_patients.py -v
"""

from datetime import datetime

import pytest

from services.errors import NotFoundError
from services.patients import (
    create_patient,
    list_patients,
    update_patient,
    delete_patient,
    patient_stats,
)

NOW = datetime(2025, 1, 15, 10, 0)
KEY = {"praticien": "JC", "mois": "20250101"}


def counters(db, run):
    realisation = run(db.analyse_realisation.find_one(KEY, {"_id": 0})) or {}
    rdv = run(db.analyse_rendez_vous.find_one(KEY, {"_id": 0})) or {}
    return realisation.get("nb_patients"), rdv.get("nb_patients"), rdv.get("nb_nouveaux_patients")


class TestCounters:
    def test_create_increments(self, db, run):
        run(create_patient("JC", {"nom": "Martin", "prenom": "Léa"}, now=NOW))
        run(create_patient("JC", {"nom": "Durand", "prenom": "Paul", "statut": "actif"}, now=NOW))
        assert counters(db, run) == (2, 2, 1)

    def test_delete_decrements(self, db, run):
        patient = run(create_patient("JC", {"nom": "Martin", "prenom": "Léa"}, now=NOW))
        run(delete_patient("JC", patient["id"], now=NOW))
        assert counters(db, run) == (0, 0, 0)

    def test_floor_at_zero(self, db, run):
        patient = run(create_patient("JC", {"nom": "Martin", "prenom": "Léa"}, now=NOW))
        run(db.analyse_realisation.update_one(KEY, {"$set": {"nb_patients": 0}}))
        run(db.analyse_rendez_vous.update_one(KEY, {"$set": {"nb_patients": 0, "nb_nouveaux_patients": 0}}))

        run(delete_patient("JC", patient["id"], now=NOW))
        assert counters(db, run) == (0, 0, 0)

    def test_existing_imported_row_is_incremented(self, db, run):
        run(db.analyse_realisation.insert_one({**KEY, "nb_patients": 78, "montant_facture": 28950}))
        run(create_patient("JC", {"nom": "Martin", "prenom": "Léa"}, now=NOW))
        row = run(db.analyse_realisation.find_one(KEY))
        assert row["nb_patients"] == 79
        assert row["montant_facture"] == 28950


class TestCrud:
    def seed(self, run):
        run(create_patient("JC", {"nom": "Martin", "prenom": "Léa", "email": "Lea@Mail.fr",
                                  "montant_total": 300}, now=NOW))
        run(create_patient("JC", {"nom": "Bernard", "prenom": "Hugo", "statut": "actif",
                                  "montant_total": 900}, now=NOW))
        run(create_patient("DV", {"nom": "Martinez", "prenom": "Ana"}, now=NOW))

    def test_list_is_scoped_and_sorted(self, run):
        self.seed(run)
        assert [p["nom"] for p in run(list_patients("JC"))] == ["Bernard", "Martin"]
        assert [p["nom"] for p in run(list_patients("JC", sort="montant"))] == ["Bernard", "Martin"]

    def test_search_and_filter(self, run):
        self.seed(run)
        assert [p["nom"] for p in run(list_patients("JC", search="mart"))] == ["Martin"]
        assert [p["nom"] for p in run(list_patients("JC", search="lea@"))] == ["Martin"]
        assert [p["nom"] for p in run(list_patients("JC", statut="actif"))] == ["Bernard"]

    def test_search_is_literal(self, run):
        self.seed(run)
        assert run(list_patients("JC", search=".*")) == []

    def test_update(self, run):
        patient = run(create_patient("JC", {"nom": "Martin", "prenom": "Léa"}, now=NOW))
        updated = run(update_patient("JC", patient["id"], {"statut": "actif", "nb_visites": 3, "praticien": "DV"}))
        assert updated["statut"] == "actif"
        assert updated["nb_visites"] == 3
        assert updated["praticien"] == "JC"

    def test_other_practitioner_cannot_touch(self, run):
        patient = run(create_patient("JC", {"nom": "Martin", "prenom": "Léa"}, now=NOW))
        with pytest.raises(NotFoundError):
            run(delete_patient("DV", patient["id"], now=NOW))
        with pytest.raises(NotFoundError):
            run(update_patient("DV", patient["id"], {"notes": "x"}))

    def test_stats(self, run):
        self.seed(run)
        assert run(patient_stats("JC")) == {"total": 2, "actifs": 1, "nouveaux": 1, "inactifs": 0}
