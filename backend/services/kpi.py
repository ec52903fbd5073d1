"""
Efficience Analytics - Agrégateur KPI

Calcule les indicateurs mensuels d'un praticien à partir des collections d'analyse:
- analyse_realisation (plusieurs lignes par praticien/mois, sommées)
- analyse_rendez_vous, analyse_jours_ouverts, analyse_devis (une ligne par praticien/mois)

Les sommes et divisions se font sur les valeurs brutes, l'arrondi n'intervient
qu'à la sortie (2 décimales pour les montants, 1 pour les taux et durées).
Toute lecture d'un praticien est filtrée sur son code; les vues multi-praticiens
sont réservées à l'admin (routes/admin.py).
"""

import logging
from typing import Dict, List, Optional, Tuple

from config import db
from services.periods import normalize_mois

logger = logging.getLogger("kpi")

PROJECTION = {"_id": 0}


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0


def derive_kpi(
    total_facture: float,
    total_encaisse: float,
    nb_patients: float,
    rdv: Optional[Dict],
    minutes_ouvertes: float,
    devis: Optional[Dict],
) -> Dict:
    """Dérive le snapshot KPI à partir des sommes brutes (fonction pure)."""
    rdv = rdv or {}
    devis = devis or {}
    heures = minutes_ouvertes / 60 if minutes_ouvertes else 0
    nb_rdv = rdv.get("nb_rdv", 0) or 0
    nb_devis = devis.get("nb_devis", 0) or 0

    return {
        "ca_mensuel": total_facture,
        "montant_encaisse": total_encaisse,
        "nb_patients": nb_patients,
        "nb_nouveaux_patients": rdv.get("nb_nouveaux_patients", 0) or 0,
        "nb_rdv": nb_rdv,
        "duree_moyenne_rdv": round(_ratio(rdv.get("duree_totale_rdv", 0) or 0, nb_rdv), 1),
        "panier_moyen": round(_ratio(total_facture, nb_patients), 2),
        "production_horaire": round(_ratio(total_facture, heures), 2),
        "heures_travaillees": round(heures, 1),
        "nb_devis": nb_devis,
        "montant_devis_propose": devis.get("montant_propositions", 0) or 0,
        "nb_devis_acceptes": devis.get("nb_devis_acceptes", 0) or 0,
        "montant_devis_accepte": devis.get("montant_accepte", 0) or 0,
        "taux_acceptation_devis": round(100 * _ratio(devis.get("nb_devis_acceptes", 0) or 0, nb_devis), 1),
    }


async def _sum_realisation(match: Dict) -> Dict:
    pipeline = [
        {"$match": match},
        {"$group": {
            "_id": None,
            "total_facture": {"$sum": "$montant_facture"},
            "total_encaisse": {"$sum": "$montant_encaisse"},
            "total_patients": {"$sum": "$nb_patients"},
        }},
    ]
    rows = await db.analyse_realisation.aggregate(pipeline).to_list(1)
    return rows[0] if rows else {}


async def calculate_kpi(practitioner_code: str, mois: str) -> Dict:
    """Snapshot KPI d'un praticien pour un mois (absence de données = zéros)."""
    mois = normalize_mois(mois)
    key = {"praticien": practitioner_code, "mois": mois}

    realisation = await _sum_realisation(key)
    rdv = await db.analyse_rendez_vous.find_one(key, PROJECTION)
    heures = await db.analyse_jours_ouverts.find_one(key, PROJECTION)
    devis = await db.analyse_devis.find_one(key, PROJECTION)

    return derive_kpi(
        total_facture=realisation.get("total_facture", 0),
        total_encaisse=realisation.get("total_encaisse", 0),
        nb_patients=realisation.get("total_patients", 0),
        rdv=rdv,
        minutes_ouvertes=(heures or {}).get("nb_heures", 0) or 0,
        devis=devis,
    )


async def get_historique(practitioner_code: str, jusqu_a: Optional[str] = None, limit: int = 6) -> List[Dict]:
    """
    Historique mensuel (CA, encaissé, patients, RDV, minutes ouvertes)
    des `limit` derniers mois jusqu'à `jusqu_a` inclus, du plus ancien au plus récent.
    """
    match = {"praticien": practitioner_code}
    if jusqu_a:
        match["mois"] = {"$lte": jusqu_a}

    pipeline = [
        {"$match": match},
        {"$group": {
            "_id": "$mois",
            "ca": {"$sum": "$montant_facture"},
            "encaisse": {"$sum": "$montant_encaisse"},
            "patients": {"$sum": "$nb_patients"},
        }},
        {"$sort": {"_id": -1}},
        {"$limit": limit},
    ]
    results = await db.analyse_realisation.aggregate(pipeline).to_list(limit)

    enriched = []
    for row in results:
        key = {"praticien": practitioner_code, "mois": row["_id"]}
        rdv = await db.analyse_rendez_vous.find_one(key, PROJECTION)
        heures = await db.analyse_jours_ouverts.find_one(key, PROJECTION)
        enriched.append({
            "mois": row["_id"],
            "ca": row["ca"],
            "encaisse": row["encaisse"],
            "patients": row["patients"],
            "rdv": (rdv or {}).get("nb_rdv", 0),
            "heures": (heures or {}).get("nb_heures", 0),
        })

    enriched.reverse()
    return enriched


# ==================== TENDANCES ====================

def compute_trend(last: float, prev: float) -> Optional[int]:
    """Évolution en % arrondie, None si le mois précédent est nul."""
    if not prev:
        return None
    return round(100 * (last - prev) / prev)


def compute_trends(ca_mensuel: List[Dict]) -> Tuple[Optional[int], Optional[int]]:
    """
    Tendance CA et patients entre les deux derniers mois distincts.
    ca_mensuel: lignes {"_id": {"praticien", "mois"}, "total_facture", "total_patients"}
    """
    all_mois = sorted({row["_id"]["mois"] for row in ca_mensuel})
    if len(all_mois) < 2:
        return None, None

    last_mois, prev_mois = all_mois[-1], all_mois[-2]

    def total(mois: str, field: str) -> float:
        return sum(row.get(field, 0) for row in ca_mensuel if row["_id"]["mois"] == mois)

    trend_ca = compute_trend(total(last_mois, "total_facture"), total(prev_mois, "total_facture"))
    trend_patients = compute_trend(total(last_mois, "total_patients"), total(prev_mois, "total_patients"))
    return trend_ca, trend_patients


def compute_absences(total_rdv: float, total_patients: float) -> int:
    """Absences = RDV pris - patients venus, jamais négatif."""
    return max(0, int(total_rdv - total_patients))


# ==================== VUES PRATICIEN ====================

async def practitioner_statistics(practitioner_code: str) -> Dict:
    """KPI mois par mois d'un praticien + lignes devis."""
    realisation = await db.analyse_realisation.aggregate([
        {"$match": {"praticien": practitioner_code}},
        {"$group": {
            "_id": "$mois",
            "total_facture": {"$sum": "$montant_facture"},
            "total_encaisse": {"$sum": "$montant_encaisse"},
            "total_patients": {"$sum": "$nb_patients"},
        }},
        {"$sort": {"_id": 1}},
    ]).to_list(500)

    rdv_by_mois = {
        r["mois"]: r for r in await db.analyse_rendez_vous.find(
            {"praticien": practitioner_code}, PROJECTION
        ).to_list(500)
    }
    heures_by_mois = {
        h["mois"]: h for h in await db.analyse_jours_ouverts.find(
            {"praticien": practitioner_code}, PROJECTION
        ).to_list(500)
    }
    devis = await db.analyse_devis.find({"praticien": practitioner_code}, PROJECTION).sort("mois", 1).to_list(500)

    monthly_kpi = []
    for row in realisation:
        mois = row["_id"]
        rdv = rdv_by_mois.get(mois, {})
        heures = (heures_by_mois.get(mois, {}).get("nb_heures", 0) or 0) / 60
        monthly_kpi.append({
            "mois": mois,
            "ca_facture": row["total_facture"],
            "ca_encaisse": row["total_encaisse"],
            "nb_patients": row["total_patients"],
            "panier_moyen": round(_ratio(row["total_facture"], row["total_patients"]), 2),
            "rentabilite_horaire": round(_ratio(row["total_facture"], heures), 2),
            "heures_travaillees": round(heures, 1),
            "nb_rdv": rdv.get("nb_rdv", 0),
            "nb_nouveaux_patients": rdv.get("nb_nouveaux_patients", 0),
        })

    return {"monthly_kpi": monthly_kpi, "devis": devis}


async def get_encours(practitioner_code: Optional[str] = None) -> Optional[Dict]:
    """Jauge d'encours du praticien, sinon la jauge GLOBAL la plus récente."""
    if practitioner_code:
        own = await db.encours.find_one({"praticien": practitioner_code}, PROJECTION)
        if own:
            return own
    rows = await db.encours.find({"praticien": "GLOBAL"}, PROJECTION).sort("date_import", -1).to_list(1)
    return rows[0] if rows else None


# ==================== VUES ADMIN ====================

async def active_practitioners() -> List[Dict]:
    return await db.users.find(
        {"role": "practitioner", "is_active": True},
        {"_id": 0, "password": 0},
    ).to_list(1000)


def practitioner_id(user: Dict) -> str:
    """Identifiant praticien: code si présent, sinon nom ou email"""
    return user.get("practitioner_code") or user.get("name") or user.get("email")


async def _group(collection, match: Dict, group_id, sums: Dict[str, str], sort: Optional[Dict] = None) -> List[Dict]:
    pipeline = [
        {"$match": match},
        {"$group": {"_id": group_id, **{name: {"$sum": field} for name, field in sums.items()}}},
    ]
    if sort:
        pipeline.append({"$sort": sort})
    return await collection.aggregate(pipeline).to_list(5000)


REALISATION_SUMS = {
    "total_facture": "$montant_facture",
    "total_encaisse": "$montant_encaisse",
    "total_patients": "$nb_patients",
}
RDV_SUMS = {
    "total_rdv": "$nb_rdv",
    "total_patients": "$nb_patients",
    "total_nouveaux": "$nb_nouveaux_patients",
    "total_duree": "$duree_totale_rdv",
}
DEVIS_SUMS = {
    "total_devis": "$nb_devis",
    "total_montant_propose": "$montant_propositions",
    "total_acceptes": "$nb_devis_acceptes",
    "total_montant_accepte": "$montant_accepte",
}


async def admin_dashboard() -> Dict:
    """Dashboard global: agrégats par praticien, tendances, absences."""
    practitioners = await active_practitioners()
    codes = [practitioner_id(p) for p in practitioners]
    match = {"praticien": {"$in": codes}}

    ca_by_practitioner = await _group(db.analyse_realisation, match, "$praticien", REALISATION_SUMS)
    rdv_by_practitioner = await _group(db.analyse_rendez_vous, match, "$praticien", RDV_SUMS)
    heures_by_practitioner = await _group(
        db.analyse_jours_ouverts, match, "$praticien", {"total_minutes": "$nb_heures"}
    )
    devis_stats = await _group(db.analyse_devis, match, "$praticien", DEVIS_SUMS)
    ca_mensuel = await _group(
        db.analyse_realisation, match, {"praticien": "$praticien", "mois": "$mois"},
        REALISATION_SUMS, sort={"_id.mois": 1},
    )
    rdv_mensuel = await _group(
        db.analyse_rendez_vous, match, {"mois": "$mois", "praticien": "$praticien"},
        {k: v for k, v in RDV_SUMS.items() if k != "total_duree"}, sort={"_id.mois": 1},
    )

    all_mois = sorted({row["_id"]["mois"] for row in ca_mensuel})
    report_filter = {"mois": all_mois[-1]} if all_mois else {}
    total_reports = await db.reports.count_documents(report_filter)
    reports_envoyes = await db.reports.count_documents({**report_filter, "email_envoye": True})

    trend_ca, trend_patients = compute_trends(ca_mensuel)

    total_rdv = sum(r.get("total_rdv", 0) for r in rdv_by_practitioner)
    total_patients_rdv = sum(r.get("total_patients", 0) for r in rdv_by_practitioner)

    return {
        "practitioners": [
            {"id": p["id"], "name": p.get("name"), "code": practitioner_id(p), "email": p.get("email")}
            for p in practitioners
        ],
        "ca_by_practitioner": ca_by_practitioner,
        "rdv_by_practitioner": rdv_by_practitioner,
        "heures_by_practitioner": heures_by_practitioner,
        "encours": await get_encours(),
        "total_reports": total_reports,
        "reports_envoyes": reports_envoyes,
        "ca_mensuel": ca_mensuel,
        "rdv_mensuel": rdv_mensuel,
        "devis_stats": devis_stats,
        "trend_ca": trend_ca,
        "trend_patients": trend_patients,
        "total_absences": compute_absences(total_rdv, total_patients_rdv),
        "total_presences": total_patients_rdv,
    }


async def compare_practitioners(codes: List[str]) -> Dict:
    """Comparaison mois par mois et KPI cumulés de plusieurs cabinets."""
    match = {"praticien": {"$in": codes}}
    group_id = {"praticien": "$praticien", "mois": "$mois"}

    ca_comparison = await _group(db.analyse_realisation, match, group_id, REALISATION_SUMS, sort={"_id.mois": 1})
    rdv_comparison = await _group(
        db.analyse_rendez_vous, match, group_id,
        {"total_rdv": "$nb_rdv", "total_patients": "$nb_patients", "total_nouveaux": "$nb_nouveaux_patients"},
        sort={"_id.mois": 1},
    )
    heures_comparison = await _group(
        db.analyse_jours_ouverts, match, group_id, {"total_minutes": "$nb_heures"}, sort={"_id.mois": 1}
    )

    kpi_by_practitioner = {}
    for code in codes:
        one = {"praticien": code}
        ca = await _group(db.analyse_realisation, one, None, REALISATION_SUMS)
        heures = await _group(db.analyse_jours_ouverts, one, None, {"total_minutes": "$nb_heures"})
        rdv = await _group(db.analyse_rendez_vous, one, None, RDV_SUMS)

        ca = ca[0] if ca else {}
        rdv = rdv[0] if rdv else {}
        total_heures = (heures[0]["total_minutes"] / 60) if heures else 0
        total_ca = ca.get("total_facture", 0)
        total_patients = ca.get("total_patients", 0)

        kpi_by_practitioner[code] = {
            "ca_total": total_ca,
            "total_encaisse": ca.get("total_encaisse", 0),
            "total_patients": total_patients,
            "panier_moyen": round(_ratio(total_ca, total_patients), 2),
            "production_horaire": round(_ratio(total_ca, total_heures), 2),
            "heures_travaillees": round(total_heures, 1),
            "total_rdv": rdv.get("total_rdv", 0),
            "total_nouveaux_patients": rdv.get("total_nouveaux", 0),
        }

    return {
        "ca_comparison": ca_comparison,
        "rdv_comparison": rdv_comparison,
        "heures_comparison": heures_comparison,
        "kpi_by_practitioner": kpi_by_practitioner,
    }


async def cabinet_details(code: str) -> Dict:
    one = {"praticien": code}
    return {
        "realisation": await _group(db.analyse_realisation, one, "$mois", REALISATION_SUMS, sort={"_id": 1}),
        "rdv": await db.analyse_rendez_vous.find(one, PROJECTION).sort("mois", 1).to_list(500),
        "heures": await db.analyse_jours_ouverts.find(one, PROJECTION).sort("mois", 1).to_list(500),
        "devis": await db.analyse_devis.find(one, PROJECTION).sort("mois", 1).to_list(500),
    }


async def global_statistics() -> Dict:
    practitioners = await active_practitioners()
    codes = [practitioner_id(p) for p in practitioners]
    match = {"praticien": {"$in": codes}}

    global_ca = await _group(db.analyse_realisation, match, None, REALISATION_SUMS)
    global_rdv = await _group(db.analyse_rendez_vous, match, None, RDV_SUMS)
    global_heures = await _group(db.analyse_jours_ouverts, match, None, {"total_minutes": "$nb_heures"})
    evolution = await _group(db.analyse_realisation, match, "$mois", REALISATION_SUMS, sort={"_id": 1})
    per_practitioner = await _group(
        db.analyse_realisation, match, {"mois": "$mois", "praticien": "$praticien"},
        REALISATION_SUMS, sort={"_id.mois": 1},
    )

    return {
        "global_ca": global_ca[0] if global_ca else {},
        "global_rdv": global_rdv[0] if global_rdv else {},
        "global_heures": global_heures[0] if global_heures else {},
        "encours": await get_encours(),
        "evolution_mensuelle": evolution,
        "per_practitioner": [
            {"mois": row["_id"]["mois"], "praticien": row["_id"]["praticien"],
             **{k: row[k] for k in REALISATION_SUMS}}
            for row in per_practitioner
        ],
        "nb_praticiens": len(codes),
    }
