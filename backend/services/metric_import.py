"""
Efficience Analytics - Import et saisie manuelle des métriques

Types de métriques et politique d'écriture:
- realisation     -> analyse_realisation    INSERT à l'import (plusieurs lignes sommées par le KPI)
- rendez-vous     -> analyse_rendez_vous    UPSERT (praticien, mois)
- jours-ouverts   -> analyse_jours_ouverts  UPSERT (praticien, mois)
- devis           -> analyse_devis          UPSERT (praticien, mois)
- encours         -> encours                feuille Type/Valeur -> une jauge GLOBAL

La saisie manuelle upsert toujours par (praticien, mois), realisation comprise.
"""

import logging
import uuid
from typing import Dict, List, Optional

from config import db, now_iso, parse_number
from services.errors import InvalidInputError
from services.periods import normalize_mois

logger = logging.getLogger("metric_import")

GLOBAL_PRACTITIONER = "GLOBAL"

COLLECTIONS = {
    "realisation": "analyse_realisation",
    "rendez-vous": "analyse_rendez_vous",
    "jours-ouverts": "analyse_jours_ouverts",
    "devis": "analyse_devis",
    "encours": "encours",
}

# champ stocké -> en-têtes acceptés (le premier présent l'emporte)
IMPORT_COLUMNS = {
    "realisation": {
        "nb_patients": ["Nb patients"],
        "montant_facture": ["Montant facturé", "Montant facture"],
        "montant_encaisse": ["Montant encaissé", "Montant encaisse"],
    },
    "rendez-vous": {
        "nb_rdv": ["Nb RDV"],
        "duree_totale_rdv": ["Duree totale RDV"],
        "nb_patients": ["Nb patients"],
        "nb_nouveaux_patients": ["Nb nouveaux patients"],
    },
    "jours-ouverts": {
        "nb_heures": ["Nb heures"],
    },
    "devis": {
        "nb_devis": ["Nb devis"],
        "montant_propositions": ["Montant propositions"],
        "nb_devis_acceptes": ["Nb des devis acceptes"],
        "montant_accepte": ["Montant accepté", "Montant accept"],
    },
}

# libellé "Type" de la feuille encours -> champ stocké
ENCOURS_TYPES = {
    "Duree totale a realiser": "duree_totale_a_realiser",
    "Montant total a facturer": "montant_total_a_facturer",
    "Rentabilite horaire": "rentabilite_horaire",
    "Rentabilite jours travailles": "rentabilite_jours_travailles",
    "Patients en cours": "patients_en_cours",
}

METRIC_FIELDS = {kind: list(columns.keys()) for kind, columns in IMPORT_COLUMNS.items()}
METRIC_FIELDS["encours"] = list(ENCOURS_TYPES.values())


def check_kind(kind: str) -> str:
    if kind not in COLLECTIONS:
        raise InvalidInputError("Type de données inconnu.")
    return kind


def parse_tsv(content: str, delimiter: str = "\t") -> List[Dict[str, str]]:
    """
    Parse un fichier tabulé (première ligne = en-têtes).
    Les lignes ayant moins de cellules que d'en-têtes sont ignorées.
    """
    lines = [line.rstrip("\r") for line in content.strip().split("\n")]
    if not lines or not lines[0].strip():
        return []

    headers = [h.strip().lstrip("\ufeff") for h in lines[0].split(delimiter)]
    rows = []
    for line in lines[1:]:
        values = [v.strip() for v in line.split(delimiter)]
        if len(values) >= len(headers):
            rows.append(dict(zip(headers, values)))
    return rows


def _first_value(row: Dict, headers: List[str]):
    for header in headers:
        if row.get(header):
            return row[header]
    return None


def _metric_values(kind: str, row: Dict) -> Dict:
    return {
        field: parse_number(_first_value(row, headers))
        for field, headers in IMPORT_COLUMNS[kind].items()
    }


def _row_key(row: Dict, line: int) -> Dict:
    praticien = (row.get("Praticien") or "").strip()
    if not praticien:
        raise InvalidInputError(f"Ligne {line}: praticien manquant")
    try:
        mois = normalize_mois(row.get("Mois"))
    except InvalidInputError as e:
        raise InvalidInputError(f"Ligne {line}: {e.message}")
    return {"praticien": praticien, "mois": mois}


async def _import_encours(rows: List[Dict]) -> int:
    values = {}
    for row in rows:
        if row.get("Type"):
            values[row["Type"]] = parse_number(row.get("Valeur"))

    doc = {field: values.get(label, 0) for label, field in ENCOURS_TYPES.items()}
    await db.encours.insert_one({
        "id": str(uuid.uuid4()),
        "praticien": GLOBAL_PRACTITIONER,
        **doc,
        "date_import": now_iso(),
    })
    return len(values)


async def import_batch(kind: str, rows: List[Dict]) -> Dict:
    """
    Importe des lignes parsées. Toutes les lignes sont validées avant écriture.
    Retourne {"count": n}.
    """
    check_kind(kind)
    collection = db[COLLECTIONS[kind]]

    if kind == "encours":
        count = await _import_encours(rows)
        logger.info(f"[IMPORT] encours: {count} valeurs")
        return {"count": count}

    prepared = []
    for line, row in enumerate(rows, start=2):
        prepared.append((_row_key(row, line), _metric_values(kind, row)))

    now = now_iso()
    for key, values in prepared:
        if kind == "realisation":
            await collection.insert_one({"id": str(uuid.uuid4()), **key, **values, "created_at": now})
        else:
            await collection.update_one(
                key,
                {"$set": {**values, "updated_at": now}, "$setOnInsert": {"id": str(uuid.uuid4())}},
                upsert=True,
            )

    logger.info(f"[IMPORT] {kind}: {len(prepared)} lignes")
    return {"count": len(prepared)}


def _manual_values(kind: str, data: Dict) -> Dict:
    return {field: parse_number(data.get(field)) for field in METRIC_FIELDS[kind]}


async def record_manual_entry(practitioner_code: str, kind: str, mois: str, data: Dict) -> Dict:
    """Saisie manuelle d'un praticien (mois validé avant toute écriture)."""
    check_kind(kind)
    mois = normalize_mois(mois)
    values = _manual_values(kind, data or {})
    collection = db[COLLECTIONS[kind]]
    now = now_iso()

    if kind == "encours":
        key = {"praticien": practitioner_code}
        values["date_import"] = now
    else:
        key = {"praticien": practitioner_code, "mois": mois}

    await collection.update_one(
        key,
        {"$set": {**values, "updated_at": now}, "$setOnInsert": {"id": str(uuid.uuid4())}},
        upsert=True,
    )
    logger.info(f"Saisie manuelle [{kind}] mois {mois} par {practitioner_code}")
    return await collection.find_one(key, {"_id": 0})


async def get_manual_entry(practitioner_code: str, kind: str, mois: str) -> Optional[Dict]:
    check_kind(kind)
    if kind == "encours":
        return await db.encours.find_one({"praticien": practitioner_code}, {"_id": 0})
    mois = normalize_mois(mois)
    return await db[COLLECTIONS[kind]].find_one({"praticien": practitioner_code, "mois": mois}, {"_id": 0})


async def data_summary() -> Dict:
    return {
        "devis": await db.analyse_devis.count_documents({}),
        "jours_ouverts": await db.analyse_jours_ouverts.count_documents({}),
        "realisation": await db.analyse_realisation.count_documents({}),
        "rendez_vous": await db.analyse_rendez_vous.count_documents({}),
        "encours": await db.encours.count_documents({}),
    }
