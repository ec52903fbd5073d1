"""
Efficience Analytics - Gestion des mois

Format canonique en base: YYYYMMDD (jour toujours "01" pour les saisies).
Les tokens sont de largeur fixe: le tri lexicographique est chronologique.
"""

import re
import calendar
from datetime import date, datetime
from typing import Optional

from services.errors import InvalidInputError

MOIS_PATTERN = re.compile(r"^\d{6}(\d{2})?$")

MOIS_NOMS = [
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
]
MOIS_COURTS = ["Jan", "Fév", "Mar", "Avr", "Mai", "Jun", "Jul", "Aoû", "Sep", "Oct", "Nov", "Déc"]


def normalize_mois(raw) -> str:
    """
    Normalise un mois en YYYYMMDD.
    - "202501"   -> "20250101"
    - "20250115" -> "20250115"
    Lève InvalidInputError si le token n'a pas 6 ou 8 chiffres ou si le mois est hors 01-12.
    """
    if raw is None:
        raise InvalidInputError("Mois requis.")
    value = str(raw).strip()
    if not MOIS_PATTERN.match(value):
        raise InvalidInputError("Format du mois invalide (attendu: YYYYMM ou YYYYMMDD).")
    if not 1 <= int(value[4:6]) <= 12:
        raise InvalidInputError(f"Mois invalide: {value[4:6]}")
    if len(value) == 6:
        return value + "01"
    return value


def mois_label(mois: str) -> str:
    """20250101 -> 'Janvier 2025'"""
    if not mois or len(mois) < 6:
        return ""
    return f"{MOIS_NOMS[int(mois[4:6]) - 1]} {mois[:4]}"


def mois_court(mois: str, full_year: bool = False) -> str:
    """20250101 -> 'Jan 25' (ou 'Jan 2025')"""
    year = mois[:4] if full_year else mois[2:4]
    return f"{MOIS_COURTS[int(mois[4:6]) - 1]} {year}"


def mois_formate(mois: str) -> str:
    """20250101 -> '2025-01'"""
    return f"{mois[:4]}-{mois[4:6]}"


def current_mois(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{now.year}{now.month:02d}01"


def is_last_day_of_month(day: date) -> bool:
    return day.day == calendar.monthrange(day.year, day.month)[1]
