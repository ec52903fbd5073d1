"""
Efficience Analytics - Routes Admin
Dashboards multi-praticiens, comptes, paramètres, mode dynamique.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends

from config import db, hash_password, now_iso
from models.auth import PractitionerCreate, ImpersonateRequest
from models.settings import SettingsUpdate, AiToggleRequest, CodeConfirm, DeletionRequest, DeletionConfirm
from routes.auth import require_admin, require_principal_admin, create_session, public_user
from services import kpi
from services.app_settings import (
    get_app_settings,
    update_app_settings,
    activate_dynamic_mode,
    deactivate_dynamic_mode,
    is_dynamic_active,
)
from services.errors import InvalidInputError, UpstreamFailureError
from services.event_logger import log_event
from services.report_pipeline import find_practitioner
from services.verification_codes import (
    PURPOSE_ACCOUNT_DELETION,
    PURPOSE_AI_TOGGLE,
    PURPOSE_DYNAMIC_RENEWAL,
    issue_code,
    get_pending,
    consume_code,
    generate_numeric_code,
)

logger = logging.getLogger("admin")

router = APIRouter(prefix="/admin", tags=["Admin"])

CODE_TTL = timedelta(minutes=10)
DYNAMIC_MODE_TARGET = "dynamic_mode"


# ==================== DASHBOARDS ====================

@router.get("/dashboard")
async def dashboard(user: dict = Depends(require_admin)):
    return await kpi.admin_dashboard()


@router.get("/comparison")
async def comparison(cabinet1: str, cabinet2: str, user: dict = Depends(require_admin)):
    """Comparaison de deux cabinets."""
    if not cabinet1 or not cabinet2:
        raise HTTPException(status_code=400, detail="Deux cabinets requis")
    return await kpi.compare_practitioners([cabinet1, cabinet2])


@router.get("/cabinet/{code}")
async def cabinet(code: str, user: dict = Depends(require_admin)):
    return await kpi.cabinet_details(code)


@router.get("/statistics")
async def statistics(user: dict = Depends(require_admin)):
    return await kpi.global_statistics()


# ==================== COMPTES ====================

@router.post("/practitioners")
async def create_practitioner(data: PractitionerCreate, user: dict = Depends(require_admin)):
    """Créer un compte praticien."""
    if await db.users.find_one({"email": data.email}):
        raise HTTPException(status_code=400, detail="Cet email existe déjà")
    if await db.users.find_one({"practitioner_code": data.practitioner_code}):
        raise HTTPException(status_code=400, detail="Ce code praticien existe déjà")

    new_user = {
        "id": str(uuid.uuid4()),
        "email": data.email,
        "password": hash_password(data.password),
        "name": data.name,
        "role": "practitioner",
        "practitioner_code": data.practitioner_code,
        "cabinet_name": data.cabinet_name,
        "objectif_mensuel": data.objectif_mensuel,
        "is_active": True,
        "is_verified": True,
        "created_at": now_iso(),
        "created_by": user.get("id")
    }
    await db.users.insert_one(new_user)
    await log_event("account_created", "user", new_user["id"], user=user["email"],
                    praticien=data.practitioner_code)

    new_user.pop("password", None)
    new_user.pop("_id", None)
    return {"success": True, "user": new_user}


@router.post("/impersonate")
async def impersonate(data: ImpersonateRequest, user: dict = Depends(require_admin)):
    """Ouvre une session au nom d'un praticien."""
    practitioner = await find_practitioner(data.practitioner_code)
    token = await create_session(practitioner["id"], impersonated_by=user["id"])

    logger.info(f"Admin {user.get('name')} connecté en tant que {practitioner.get('name')} ({data.practitioner_code})")
    await log_event("impersonate", "user", practitioner["id"], user=user["email"],
                    praticien=data.practitioner_code)
    return {"token": token, "user": public_user(practitioner)}


@router.post("/deactivate-send-code")
async def deletion_send_code(data: DeletionRequest, user: dict = Depends(require_admin)):
    """Étape 1 de la suppression: code envoyé à l'admin demandeur (10 min)."""
    from email_service import email_service

    target = await db.users.find_one({"id": data.user_id}, {"_id": 0})
    if not target:
        raise HTTPException(status_code=404, detail="Utilisateur non trouvé")
    if target.get("role") == "admin":
        raise HTTPException(status_code=403, detail="Impossible de supprimer un administrateur")

    code = generate_numeric_code()
    await issue_code(PURPOSE_ACCOUNT_DELETION, data.user_id, CODE_TTL,
                     payload={"requested_by": user["email"]}, code=code)

    label = f"suppression du compte {target.get('name')} ({target.get('practitioner_code') or target.get('email')})"
    if not email_service.send_verification_code(user["email"], code, label):
        raise UpstreamFailureError("Erreur lors de l'envoi du code")

    return {"message": f"Code de vérification envoyé à {user['email']}."}


@router.post("/deactivate-confirm")
async def deletion_confirm(data: DeletionConfirm, user: dict = Depends(require_admin)):
    """Étape 2: vérifie le code puis supprime le compte et toutes ses données."""
    await consume_code(PURPOSE_ACCOUNT_DELETION, data.user_id, data.code)

    target = await db.users.find_one({"id": data.user_id}, {"_id": 0})
    if not target:
        raise HTTPException(status_code=404, detail="Utilisateur non trouvé")
    if target.get("role") == "admin":
        raise HTTPException(status_code=403, detail="Impossible de supprimer un administrateur")

    code = kpi.practitioner_id(target)
    for collection in ("analyse_realisation", "analyse_rendez_vous", "analyse_jours_ouverts",
                       "analyse_devis", "encours", "patients", "reports"):
        await db[collection].delete_many({"praticien": code})
    await db.sessions.delete_many({"user_id": data.user_id})
    await db.users.delete_one({"id": data.user_id})

    logger.info(f"Compte SUPPRIMÉ définitivement : {target.get('name')} ({target.get('email')}) par admin {user.get('name')}")
    await log_event("account_deleted", "user", data.user_id, user=user["email"], praticien=code,
                    details={"email": target.get("email")})
    return {"message": f"Compte de {target.get('name')} supprimé définitivement.", "deleted_user_id": data.user_id}


# ==================== PARAMÈTRES ====================

@router.get("/settings")
async def get_settings(user: dict = Depends(require_admin)):
    settings = await get_app_settings()
    return {
        "users": await db.users.find({}, {"_id": 0, "password": 0}).to_list(1000),
        "total_reports": await db.reports.count_documents({}),
        "reports_envoyes": await db.reports.count_documents({"email_envoye": True}),
        "app_settings": settings,
        "dynamic_active": is_dynamic_active(settings),
    }


@router.put("/settings")
async def put_settings(data: SettingsUpdate, user: dict = Depends(require_admin)):
    from scheduler_service import task_scheduler

    changes = {k: v for k, v in data.model_dump().items() if v is not None}
    settings = await update_app_settings(changes, updated_by=user["email"])
    if data.cron_heure:
        task_scheduler.schedule_monthly(data.cron_heure)

    await log_event("settings_updated", "settings", "app", user=user["email"], details=changes)
    return {"message": "Paramètres mis à jour.", "app_settings": settings}


# ==================== MODE DYNAMIQUE ====================

@router.post("/ai-toggle-send-code")
async def ai_toggle_send_code(data: AiToggleRequest, user: dict = Depends(require_principal_admin)):
    """Envoie un code (10 min) pour activer ou désactiver le mode dynamique."""
    from email_service import email_service

    code = generate_numeric_code()
    await issue_code(PURPOSE_AI_TOGGLE, DYNAMIC_MODE_TARGET, CODE_TTL,
                     payload={"target_state": data.target_state}, code=code)

    label = "activation des modèles IA" if data.target_state else "désactivation des modèles IA"
    if not email_service.send_verification_code(user["email"], code, label):
        raise UpstreamFailureError("Erreur lors de l'envoi du code")
    return {"message": "Code de vérification envoyé par email."}


async def _redeem_dynamic_code(code: str) -> Optional[bool]:
    """Code de bascule (admin) ou code de renouvellement (scheduler), dans cet ordre."""
    for purpose in (PURPOSE_AI_TOGGLE, PURPOSE_DYNAMIC_RENEWAL):
        pending = await get_pending(purpose, DYNAMIC_MODE_TARGET)
        if pending and pending.get("code") == code:
            doc = await consume_code(purpose, DYNAMIC_MODE_TARGET, code)
            return bool(doc.get("payload", {}).get("target_state", True))
    return None


@router.post("/ai-toggle-confirm")
async def ai_toggle_confirm(data: CodeConfirm, user: dict = Depends(require_principal_admin)):
    target_state = await _redeem_dynamic_code(data.code)
    if target_state is None:
        raise InvalidInputError("Code incorrect ou expiré.")

    if target_state:
        settings = await activate_dynamic_mode(updated_by=user["email"])
    else:
        settings = await deactivate_dynamic_mode(updated_by=user["email"])

    label = "activés" if target_state else "désactivés"
    logger.info(f"Modèles IA {label} par admin {user.get('name')}")
    await log_event("dynamic_mode_toggled", "settings", "app", user=user["email"],
                    details={"target_state": target_state})
    return {
        "message": f"Modèles IA {label} avec succès.",
        "ai_models_enabled": settings["ai_models_enabled"],
        "dynamic_active": is_dynamic_active(settings),
        "dynamic_expires_at": settings.get("dynamic_expires_at"),
    }
