"""
Efficience Analytics - Moteur de recommandations

Règles évaluées dans un ordre fixe, chacune indépendante des autres.
Les seuils sont des constantes métier (comparaison stricte).
"""

from typing import Dict, List

SEUIL_PANIER_MOYEN = 400
SEUIL_PRODUCTION_HORAIRE = 180
SEUIL_TAUX_ACCEPTATION = 60
# 2 nouveaux patients par jour x 22 jours ouvrés
SEUIL_NOUVEAUX_PATIENTS = 2 * 22

REC_PANIER_MOYEN = (
    "Le panier moyen est en dessous de la moyenne nationale (400€). "
    "Travaillez sur le diagnostic complet et la communication des plans de traitement."
)
REC_PRODUCTION_HORAIRE = (
    "La production horaire est faible. "
    "Optimisez l'organisation du planning avec des créneaux de 10 minutes multiples."
)
REC_TAUX_ACCEPTATION = (
    "Le taux d'acceptation des devis est inférieur à 60%. "
    "Améliorez la présentation des plans de traitement."
)
REC_NOUVEAUX_PATIENTS = (
    "Le nombre de nouveaux patients est faible. "
    "Investissez dans le marketing digital et la présence sur les réseaux sociaux."
)
REC_DEFAUT = [
    "Les indicateurs sont globalement bons. Continuez à maintenir cette performance.",
    "Pensez à diversifier votre offre de soins (facettes, aligneurs) pour augmenter le panier moyen.",
]


def _num(kpi: Dict, key: str) -> float:
    try:
        return float(kpi.get(key) or 0)
    except (TypeError, ValueError):
        return 0.0


def generate_recommendations(kpi: Dict) -> List[str]:
    """Retourne la liste ordonnée des recommandations pour un snapshot KPI."""
    recs = []

    if _num(kpi, "panier_moyen") < SEUIL_PANIER_MOYEN:
        recs.append(REC_PANIER_MOYEN)
    if _num(kpi, "production_horaire") < SEUIL_PRODUCTION_HORAIRE:
        recs.append(REC_PRODUCTION_HORAIRE)
    if _num(kpi, "taux_acceptation_devis") < SEUIL_TAUX_ACCEPTATION and _num(kpi, "nb_devis") > 0:
        recs.append(REC_TAUX_ACCEPTATION)
    if _num(kpi, "nb_nouveaux_patients") < SEUIL_NOUVEAUX_PATIENTS:
        recs.append(REC_NOUVEAUX_PATIENTS)

    if not recs:
        recs.extend(REC_DEFAUT)

    return recs
