"""
Efficience Analytics - Routes Praticien
Toutes les lectures/écritures sont filtrées sur le code du praticien connecté.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from config import db
from models.metrics import ManualEntry
from models.patient import PatientCreate, PatientUpdate
from routes.auth import require_practitioner
from services import patients as patient_service
from services.event_logger import log_event
from services.kpi import practitioner_statistics, get_encours, practitioner_id
from services.metric_import import record_manual_entry, get_manual_entry

router = APIRouter(prefix="/practitioner", tags=["Practitioner"])

PROJECTION = {"_id": 0}


def _code(user: dict) -> str:
    code = practitioner_id(user)
    if not code:
        raise HTTPException(status_code=400, detail="Code praticien manquant dans votre profil")
    return code


# ==================== DASHBOARD ====================

@router.get("/dashboard")
async def dashboard(user: dict = Depends(require_practitioner)):
    code = _code(user)
    own = {"praticien": code}
    return {
        "realisations": await db.analyse_realisation.find(own, PROJECTION).sort("mois", 1).to_list(500),
        "rendez_vous": await db.analyse_rendez_vous.find(own, PROJECTION).sort("mois", 1).to_list(500),
        "jours_ouverts": await db.analyse_jours_ouverts.find(own, PROJECTION).sort("mois", 1).to_list(500),
        "encours": await get_encours(code) or {},
        "reports": await db.reports.find(own, {"_id": 0, "contenu": 0}).sort("created_at", -1).limit(5).to_list(5),
    }


@router.get("/statistics")
async def statistics(user: dict = Depends(require_practitioner)):
    return await practitioner_statistics(_code(user))


# ==================== SAISIE MANUELLE ====================

@router.post("/manual-entry")
async def manual_entry(data: ManualEntry, user: dict = Depends(require_practitioner)):
    code = _code(user)
    stored = await record_manual_entry(code, data.type, data.mois, data.data)
    await log_event("manual_entry", "metric", stored.get("id", ""), user=user["email"], praticien=code,
                    details={"type": data.type, "mois": data.mois})
    return {"message": "Données enregistrées avec succès.", "data": stored}


@router.get("/manual-entry/{kind}/{mois}")
async def read_manual_entry(kind: str, mois: str, user: dict = Depends(require_practitioner)):
    return {"data": await get_manual_entry(_code(user), kind, mois)}


# ==================== PATIENTS ====================

@router.get("/patients")
async def list_patients(
    search: Optional[str] = None,
    statut: Optional[str] = None,
    sort: Optional[str] = None,
    user: dict = Depends(require_practitioner)
):
    code = _code(user)
    return {
        "patients": await patient_service.list_patients(code, search=search, statut=statut, sort=sort),
        "stats": await patient_service.patient_stats(code),
    }


@router.post("/patients")
async def create_patient(data: PatientCreate, user: dict = Depends(require_practitioner)):
    patient = await patient_service.create_patient(_code(user), data.model_dump())
    return {"success": True, "patient": patient}


@router.put("/patients/{patient_id}")
async def update_patient(patient_id: str, data: PatientUpdate, user: dict = Depends(require_practitioner)):
    patient = await patient_service.update_patient(_code(user), patient_id, data.model_dump())
    return {"success": True, "patient": patient}


@router.delete("/patients/{patient_id}")
async def delete_patient(patient_id: str, user: dict = Depends(require_practitioner)):
    await patient_service.delete_patient(_code(user), patient_id)
    return {"success": True}
