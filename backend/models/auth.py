"""
Efficience Analytics - Modèles Auth & Comptes
Deux rôles: admin (vues multi-praticiens) et practitioner (ses propres données).
"""

from pydantic import BaseModel, validator
from typing import Optional


VALID_ROLES = ["admin", "practitioner"]


class UserLogin(BaseModel):
    email: str
    password: str


class PractitionerCreate(BaseModel):
    email: str
    password: str
    name: str
    practitioner_code: str
    cabinet_name: str = ""
    objectif_mensuel: Optional[float] = None

    @validator("email")
    def normalize_email(cls, v):
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Email invalide")
        return v

    @validator("password")
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError("Le mot de passe doit contenir au moins 6 caractères")
        return v

    @validator("practitioner_code")
    def validate_code(cls, v):
        v = v.strip().upper()
        if not v or v == "GLOBAL":
            raise ValueError(f"Code praticien invalide: {v}")
        return v


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    cabinet_name: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None

    @validator("new_password")
    def validate_new_password(cls, v):
        if v is not None and len(v) < 6:
            raise ValueError("Le mot de passe doit contenir au moins 6 caractères")
        return v


class ImpersonateRequest(BaseModel):
    practitioner_code: str
