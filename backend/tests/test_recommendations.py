"""
Efficience Analytics - Moteur de recommandations
Run: cd backend && pytest tests/test_recommendations.py -v
"""

from services.recommendations import (
    generate_recommendations,
    REC_PANIER_MOYEN,
    REC_PRODUCTION_HORAIRE,
    REC_TAUX_ACCEPTATION,
    REC_NOUVEAUX_PATIENTS,
    REC_DEFAUT,
)


def snapshot(**overrides):
    kpi = {
        "panier_moyen": 500,
        "production_horaire": 300,
        "taux_acceptation_devis": 80,
        "nb_devis": 10,
        "nb_nouveaux_patients": 60,
    }
    kpi.update(overrides)
    return kpi


class TestRules:
    def test_all_passing_gives_two_default_messages(self):
        assert generate_recommendations(snapshot()) == REC_DEFAUT
        assert len(REC_DEFAUT) == 2

    def test_low_basket_only(self):
        recs = generate_recommendations(snapshot(panier_moyen=300))
        assert recs == [REC_PANIER_MOYEN]

    def test_thresholds_are_strict(self):
        recs = generate_recommendations(snapshot(
            panier_moyen=400, production_horaire=180, taux_acceptation_devis=60, nb_nouveaux_patients=44
        ))
        assert recs == REC_DEFAUT

    def test_fixed_order(self):
        recs = generate_recommendations(snapshot(
            panier_moyen=100, production_horaire=100, taux_acceptation_devis=10, nb_nouveaux_patients=1
        ))
        assert recs == [REC_PANIER_MOYEN, REC_PRODUCTION_HORAIRE, REC_TAUX_ACCEPTATION, REC_NOUVEAUX_PATIENTS]

    def test_acceptance_rule_needs_quotes(self):
        recs = generate_recommendations(snapshot(taux_acceptation_devis=0, nb_devis=0))
        assert REC_TAUX_ACCEPTATION not in recs

    def test_empty_snapshot_uses_zeros(self):
        recs = generate_recommendations({})
        assert recs == [REC_PANIER_MOYEN, REC_PRODUCTION_HORAIRE, REC_NOUVEAUX_PATIENTS]

    def test_deterministic(self):
        kpi = snapshot(production_horaire=120)
        assert generate_recommendations(kpi) == generate_recommendations(dict(kpi))
