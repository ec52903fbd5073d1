"""
Efficience Analytics - Modèles métriques (saisie manuelle)
"""

from pydantic import BaseModel, validator
from typing import Dict, Any

from services.errors import InvalidInputError
from services.metric_import import COLLECTIONS
from services.periods import normalize_mois


class ManualEntry(BaseModel):
    type: str
    mois: str
    data: Dict[str, Any] = {}

    @validator("type")
    def validate_type(cls, v):
        if v not in COLLECTIONS:
            raise ValueError(f"Type invalide: {v}. Valides: {list(COLLECTIONS)}")
        return v

    @validator("mois")
    def validate_mois(cls, v):
        try:
            return normalize_mois(v)
        except InvalidInputError as e:
            raise ValueError(e.message)
