"""
Efficience Analytics - Modèles patients
"""

from pydantic import BaseModel, validator
from typing import Optional

from services.patients import STATUTS


def _check_statut(cls, v):
    if v is not None and v not in STATUTS:
        raise ValueError(f"Statut invalide: {v}. Valides: {list(STATUTS)}")
    return v


class PatientCreate(BaseModel):
    nom: str
    prenom: str
    date_naissance: Optional[str] = None
    telephone: str = ""
    email: str = ""
    notes: str = ""
    statut: str = "nouveau"
    dernier_rdv: Optional[str] = None
    prochain_rdv: Optional[str] = None
    montant_total: float = 0
    nb_visites: int = 0

    @validator("nom", "prenom")
    def required(cls, v):
        if not v.strip():
            raise ValueError("Nom et prénom requis")
        return v.strip()

    statut_valide = validator("statut", allow_reuse=True)(_check_statut)


class PatientUpdate(BaseModel):
    nom: Optional[str] = None
    prenom: Optional[str] = None
    date_naissance: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    statut: Optional[str] = None
    dernier_rdv: Optional[str] = None
    prochain_rdv: Optional[str] = None
    montant_total: Optional[float] = None
    nb_visites: Optional[int] = None

    statut_valide = validator("statut", allow_reuse=True)(_check_statut)
