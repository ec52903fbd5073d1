"""
Efficience Analytics - Patients d'un praticien

Chaque patient appartient à un seul praticien (toutes les requêtes filtrent sur son code).

Compteurs compensatoires du mois courant:
- création: analyse_realisation.nb_patients +1, analyse_rendez_vous.nb_patients +1,
  analyse_rendez_vous.nb_nouveaux_patients +1 si statut "nouveau"
- suppression: décréments symétriques, jamais en dessous de 0
Ces compteurs approximent la table patients, ils ne la reflètent pas exactement.
"""

import logging
import re
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from config import db, now_iso
from services.errors import NotFoundError
from services.periods import current_mois

logger = logging.getLogger("patients")

STATUTS = ("actif", "inactif", "nouveau")

SORTS = {
    "nom": [("nom", 1), ("prenom", 1)],
    "recent": [("created_at", -1)],
    "montant": [("montant_total", -1)],
    "visites": [("nb_visites", -1)],
}

UPDATABLE_FIELDS = (
    "nom", "prenom", "date_naissance", "telephone", "email", "notes",
    "statut", "dernier_rdv", "prochain_rdv", "montant_total", "nb_visites",
)


# ==================== COMPTEURS ====================

async def _increment_counters(code: str, nouveau: bool, mois: str):
    await db.analyse_realisation.update_one(
        {"praticien": code, "mois": mois},
        {
            "$inc": {"nb_patients": 1},
            "$setOnInsert": {"id": str(uuid.uuid4()), "montant_facture": 0, "montant_encaisse": 0},
        },
        upsert=True,
    )
    inc = {"nb_patients": 1}
    if nouveau:
        inc["nb_nouveaux_patients"] = 1
    on_insert = {"id": str(uuid.uuid4()), "nb_rdv": 0, "duree_totale_rdv": 0}
    if not nouveau:
        on_insert["nb_nouveaux_patients"] = 0
    await db.analyse_rendez_vous.update_one(
        {"praticien": code, "mois": mois},
        {"$inc": inc, "$setOnInsert": on_insert},
        upsert=True,
    )


async def _decrement_counters(code: str, nouveau: bool, mois: str):
    # filtre $gt: 0 -> un compteur déjà nul reste à 0
    await db.analyse_realisation.update_one(
        {"praticien": code, "mois": mois, "nb_patients": {"$gt": 0}},
        {"$inc": {"nb_patients": -1}},
    )
    await db.analyse_rendez_vous.update_one(
        {"praticien": code, "mois": mois, "nb_patients": {"$gt": 0}},
        {"$inc": {"nb_patients": -1}},
    )
    if nouveau:
        await db.analyse_rendez_vous.update_one(
            {"praticien": code, "mois": mois, "nb_nouveaux_patients": {"$gt": 0}},
            {"$inc": {"nb_nouveaux_patients": -1}},
        )


# ==================== CRUD ====================

async def create_patient(code: str, data: Dict, now: Optional[datetime] = None) -> Dict:
    patient = {
        "id": str(uuid.uuid4()),
        "praticien": code,
        "nom": data["nom"].strip(),
        "prenom": data["prenom"].strip(),
        "date_naissance": data.get("date_naissance"),
        "telephone": (data.get("telephone") or "").strip(),
        "email": (data.get("email") or "").strip().lower(),
        "notes": data.get("notes") or "",
        "statut": data.get("statut") or "nouveau",
        "dernier_rdv": data.get("dernier_rdv"),
        "prochain_rdv": data.get("prochain_rdv"),
        "montant_total": data.get("montant_total") or 0,
        "nb_visites": data.get("nb_visites") or 0,
        "created_at": now_iso(),
        "updated_at": now_iso(),
    }
    await db.patients.insert_one(patient)
    await _increment_counters(code, patient["statut"] == "nouveau", current_mois(now))
    patient.pop("_id", None)

    logger.info(f"Patient créé {patient['id']} ({code})")
    return patient


async def get_patient(code: str, patient_id: str) -> Dict:
    patient = await db.patients.find_one({"id": patient_id, "praticien": code}, {"_id": 0})
    if not patient:
        raise NotFoundError("Patient non trouvé")
    return patient


async def list_patients(
    code: str,
    search: Optional[str] = None,
    statut: Optional[str] = None,
    sort: Optional[str] = None,
) -> List[Dict]:
    query = {"praticien": code}
    if statut in STATUTS:
        query["statut"] = statut
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{"nom": pattern}, {"prenom": pattern}, {"email": pattern}, {"telephone": pattern}]

    return await db.patients.find(query, {"_id": 0}).sort(SORTS.get(sort, SORTS["nom"])).to_list(5000)


async def update_patient(code: str, patient_id: str, changes: Dict) -> Dict:
    await get_patient(code, patient_id)
    data = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
    if "email" in data:
        data["email"] = data["email"].strip().lower()
    data["updated_at"] = now_iso()
    await db.patients.update_one({"id": patient_id, "praticien": code}, {"$set": data})
    return await get_patient(code, patient_id)


async def delete_patient(code: str, patient_id: str, now: Optional[datetime] = None) -> Dict:
    patient = await get_patient(code, patient_id)
    await db.patients.delete_one({"id": patient_id, "praticien": code})
    await _decrement_counters(code, patient.get("statut") == "nouveau", current_mois(now))

    logger.info(f"Patient supprimé {patient_id} ({code})")
    return patient


async def patient_stats(code: str) -> Dict:
    return {
        "total": await db.patients.count_documents({"praticien": code}),
        "actifs": await db.patients.count_documents({"praticien": code, "statut": "actif"}),
        "nouveaux": await db.patients.count_documents({"praticien": code, "statut": "nouveau"}),
        "inactifs": await db.patients.count_documents({"praticien": code, "statut": "inactif"}),
    }
