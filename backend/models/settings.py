"""
Efficience Analytics - Modèles paramètres et codes de vérification
"""

import re
from pydantic import BaseModel, validator
from typing import Optional


HEURE_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class SettingsUpdate(BaseModel):
    auto_generation: Optional[bool] = None
    auto_email: Optional[bool] = None
    cron_heure: Optional[str] = None
    maintenance_mode: Optional[bool] = None
    import_enabled: Optional[bool] = None

    @validator("cron_heure")
    def validate_heure(cls, v):
        if v is not None and not HEURE_PATTERN.match(v):
            raise ValueError("Heure invalide (format attendu HH:MM)")
        return v


class AiToggleRequest(BaseModel):
    """Demande de bascule du mode dynamique (target_state=True pour activer)."""
    target_state: bool


class CodeConfirm(BaseModel):
    code: str

    @validator("code")
    def validate_code(cls, v):
        v = v.strip()
        if not v.isdigit() or len(v) != 6:
            raise ValueError("Le code doit contenir 6 chiffres")
        return v


class DeletionRequest(BaseModel):
    user_id: str


class DeletionConfirm(CodeConfirm):
    user_id: str
