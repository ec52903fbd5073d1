"""
Efficience Analytics - Paramètres applicatifs

Collection: settings, document unique identifié par key="app".
Le document est créé avec ses valeurs par défaut à la première lecture.
Les appelants (routes, scheduler) récupèrent les paramètres via get_app_settings()
et les passent explicitement aux services qui en ont besoin.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from config import db, now_iso, now_utc, DYNAMIC_MODE_DAYS

logger = logging.getLogger("app_settings")

SETTINGS_KEY = "app"

DEFAULT_APP_SETTINGS = {
    "auto_generation": True,
    "auto_email": True,
    "cron_heure": "20:00",
    "maintenance_mode": False,
    "ai_models_enabled": True,
    "import_enabled": True,
    "dynamic_expires_at": None,
}

BOOLEAN_FIELDS = ("auto_generation", "auto_email", "maintenance_mode", "ai_models_enabled", "import_enabled")


async def get_app_settings() -> Dict:
    """Retourne le singleton de paramètres (créé s'il n'existe pas)."""
    doc = await db.settings.find_one({"key": SETTINGS_KEY}, {"_id": 0})
    if doc:
        return {**DEFAULT_APP_SETTINGS, **doc}

    doc = {"key": SETTINGS_KEY, **DEFAULT_APP_SETTINGS, "created_at": now_iso(), "updated_at": now_iso()}
    # upsert: deux premières lectures concurrentes ne créent qu'un document
    await db.settings.update_one({"key": SETTINGS_KEY}, {"$setOnInsert": doc}, upsert=True)
    logger.info("Paramètres applicatifs initialisés avec les valeurs par défaut")
    return await db.settings.find_one({"key": SETTINGS_KEY}, {"_id": 0})


async def update_app_settings(changes: Dict[str, Any], updated_by: str = "system") -> Dict:
    """Met à jour les champs fournis (None = inchangé)."""
    await get_app_settings()
    data = {k: v for k, v in changes.items() if v is not None}
    data["updated_at"] = now_iso()
    data["updated_by"] = updated_by
    await db.settings.update_one({"key": SETTINGS_KEY}, {"$set": data})
    return await get_app_settings()


def _as_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def is_dynamic_active(settings: Dict, now: Optional[datetime] = None) -> bool:
    """Le mode dynamique est actif tant que sa date d'expiration n'est pas passée."""
    expires_at = _as_datetime(settings.get("dynamic_expires_at"))
    if not settings.get("ai_models_enabled") or expires_at is None:
        return False
    return expires_at > (now or now_utc())


async def activate_dynamic_mode(updated_by: str, now: Optional[datetime] = None) -> Dict:
    expires_at = (now or now_utc()) + timedelta(days=DYNAMIC_MODE_DAYS)
    return await update_app_settings(
        {"ai_models_enabled": True, "dynamic_expires_at": expires_at.isoformat()},
        updated_by=updated_by,
    )


async def deactivate_dynamic_mode(updated_by: str) -> Dict:
    await get_app_settings()
    await db.settings.update_one(
        {"key": SETTINGS_KEY},
        {"$set": {
            "ai_models_enabled": False,
            "dynamic_expires_at": None,
            "updated_at": now_iso(),
            "updated_by": updated_by,
        }},
    )
    return await get_app_settings()


async def expire_dynamic_mode_if_due(now: Optional[datetime] = None) -> bool:
    """
    Désactive le mode dynamique si sa date d'expiration est dépassée.
    Retourne True si une expiration vient d'avoir lieu.
    """
    now = now or now_utc()
    settings = await get_app_settings()
    expires_at = _as_datetime(settings.get("dynamic_expires_at"))
    if expires_at is None or expires_at > now:
        return False

    await deactivate_dynamic_mode(updated_by="scheduler")
    logger.info(f"Mode dynamique expiré (expiration: {expires_at.isoformat()})")
    return True


def public_view(settings: Dict, now: Optional[datetime] = None) -> Dict:
    return {
        "maintenance_mode": settings.get("maintenance_mode", False),
        "ai_models_enabled": settings.get("ai_models_enabled", True),
        "import_enabled": settings.get("import_enabled", True),
        "dynamic_active": is_dynamic_active(settings, now),
        "dynamic_expires_at": settings.get("dynamic_expires_at"),
    }
