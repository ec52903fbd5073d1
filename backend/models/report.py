"""
Efficience Analytics - Modèles rapports
"""

from pydantic import BaseModel, validator

from services.errors import InvalidInputError
from services.periods import normalize_mois
from services.report_pipeline import REPORT_TYPES


def _check_mois(cls, v):
    try:
        return normalize_mois(v)
    except InvalidInputError as e:
        raise ValueError(e.message)


class ReportBatch(BaseModel):
    mois: str

    mois_valide = validator("mois", allow_reuse=True)(_check_mois)


class ReportGenerate(ReportBatch):
    praticien: str
    type: str = "mensuel"

    @validator("type")
    def validate_type(cls, v):
        if v not in REPORT_TYPES:
            raise ValueError(f"Type de rapport invalide: {v}")
        return v


class ReportSend(ReportBatch):
    force: bool = False
