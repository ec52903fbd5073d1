"""
Efficience Analytics - Composition du rapport de performance

Produit un document HTML autonome (styles en ligne, compatible email et rendu PDF):
- bandeau d'en-tête
- comportement du cabinet: résumé 6 mois + évolution du CA en barres + tableau détaillé
- résumé exécutif (statut calculé: CA réalisé vs objectif)
- jauge de performance globale
- performance financière, activité patients, répartition des actes
- recommandations et prochaines étapes

Les estimations patients (85% traités, 95% RDV honorés, 5% d'absence) et la
répartition des actes sont des proxies d'affichage fixes, pas des données mesurées.
"""

from datetime import datetime
from html import escape
from typing import Dict, List, Optional

from services.periods import mois_court

# Pondération du score global
POIDS_CA = 0.4
POIDS_PRODUCTION = 0.3
POIDS_PATIENTS = 0.3
PRODUCTION_REFERENCE = 350  # €/h pour un score de 100
PATIENTS_REFERENCE = 200    # patients/mois pour un score de 100
SCORE_PRODUCTION_DEFAUT = 80

HISTORIQUE_MOIS = 6  # mois affichés dans la section comportement

TAUX_PATIENTS_TRAITES = 0.85
TAUX_RDV_HONORES = 0.95
TAUX_ABSENCE_ESTIME = 5
TAUX_CONVERSION_MAX = 95
TAUX_CONVERSION_DEFAUT = 85
OBJECTIF_CONVERSION = 80

# (type, icône, part des RDV, part du CA, couleur)
REPARTITION_ACTES = [
    ("Consultations", "🔍", 0.44, 0.18, "#3b82f6"),
    ("Détartrages", "🦷", 0.34, 0.20, "#10b981"),
    ("Soins conservateurs", "⚕️", 0.15, 0.19, "#8b5cf6"),
    ("Prothèses", "👑", 0.07, 0.43, "#f59e0b"),
]

RECOMMANDATIONS_FIXES = [
    ("#3b82f6", "#eff6ff", "1. Optimiser le taux de conversion des devis (+5-10% potentiel)", [
        "Mettre en place un suivi systématique des devis non acceptés",
        "Proposer des facilités de paiement",
    ]),
    ("#10b981", "#f0fdf4", "2. Maintenir le bon taux de présence ✓", [
        "Envoyer des rappels SMS 48h et 24h avant le RDV",
        "Mettre en place une politique de gestion des annulations",
    ]),
    ("#f59e0b", "#fffbeb", "3. Développer l'activité prothétique", [
        "Fort potentiel de CA sur ce segment",
        "Investir dans la formation continue",
    ]),
    ("#ef4444", "#fef2f2", "4. Fidélisation patients", [
        "Programme de rappel pour contrôles annuels",
        "Communication régulière (newsletter)",
    ]),
]

PROCHAINES_ETAPES = [
    "Réunion d'équipe pour présenter les résultats",
    "Mise en place du système de rappels automatiques",
    "Audit des devis en attente (&gt; 30 jours)",
    "Formation sur les techniques de présentation des plans de traitement",
]


def fmt_money(value) -> str:
    """28950 -> '28 950', 371.15 -> '371,15'"""
    value = float(value or 0)
    if value.is_integer():
        text = f"{value:,.0f}"
    else:
        text = f"{value:,.2f}"
    return text.replace(",", " ").replace(".", ",")


def _pct_change(current: float, previous: float) -> Optional[float]:
    if not previous:
        return None
    return round((current - previous) / previous * 100, 1)


def performance_color(score: int) -> str:
    if score >= 80:
        return "#10b981"
    if score >= 60:
        return "#f59e0b"
    return "#ef4444"


def historique_du_mois(historique: List[Dict], kpi: Dict, mois: Optional[str] = None) -> List[Dict]:
    """
    Historique dont le dernier élément est le mois du rapport.
    Si ce mois n'a pas encore de données, il est construit depuis le snapshot KPI
    (les 6 mois affichés se terminent toujours sur le mois du rapport).
    """
    if not mois or (historique and historique[-1].get("mois") == mois):
        return historique
    courant = {
        "mois": mois,
        "ca": kpi.get("ca_mensuel") or 0,
        "encaisse": kpi.get("montant_encaisse") or 0,
        "patients": kpi.get("nb_patients") or 0,
        "rdv": kpi.get("nb_rdv") or 0,
        "heures": round(float(kpi.get("heures_travaillees") or 0) * 60),
    }
    return [h for h in historique if h.get("mois", "") < mois][-(HISTORIQUE_MOIS - 1):] + [courant]


def compute_report_metrics(kpi: Dict, historique: Optional[List[Dict]] = None, mois: Optional[str] = None) -> Dict:
    """
    Valeurs dérivées affichées dans le rapport (fonction pure).
    L'objectif vaut kpi["objectif"] s'il est fourni, sinon le CA du mois.
    Avec `mois`, les évolutions comparent ce mois au dernier mois connu qui le précède.
    """
    historique = historique_du_mois(historique or [], kpi, mois)
    ca = float(kpi.get("ca_mensuel") or 0)
    objectif = float(kpi.get("objectif") or ca)
    progression = round(ca / objectif * 100) if objectif > 0 else 100
    nb_patients = kpi.get("nb_patients") or 0
    nb_rdv = kpi.get("nb_rdv") or 0
    production_horaire = float(kpi.get("production_horaire") or 0)

    score_ca = min(100, progression)
    score_production = (
        min(100, round(production_horaire / PRODUCTION_REFERENCE * 100))
        if production_horaire > 0 else SCORE_PRODUCTION_DEFAUT
    )
    score_patients = min(100, round(nb_patients / PATIENTS_REFERENCE * 100))
    performance = round(
        POIDS_CA * score_ca + POIDS_PRODUCTION * score_production + POIDS_PATIENTS * score_patients
    )

    patients_traites = round(nb_patients * TAUX_PATIENTS_TRAITES)
    taux_conversion = (
        min(TAUX_CONVERSION_MAX, round(patients_traites / nb_patients * 100))
        if nb_patients > 0 else TAUX_CONVERSION_DEFAUT
    )

    actes = [
        {
            "type": label,
            "icon": icon,
            "nombre": round(nb_rdv * part_rdv),
            "ca": round(ca * part_ca),
            "pct": round(part_ca * 100),
            "color": color,
        }
        for label, icon, part_rdv, part_ca, color in REPARTITION_ACTES
    ]

    courant = historique[-1] if historique else {}
    precedent = historique[-2] if len(historique) > 1 else {}

    return {
        "ca": ca,
        "objectif": objectif,
        "ecart": ca - objectif,
        "progression": progression,
        "statut_ok": ca >= objectif,
        "score_ca": score_ca,
        "score_production": score_production,
        "score_patients": score_patients,
        "performance_globale": performance,
        "performance_color": performance_color(performance),
        "patients_traites": patients_traites,
        "rdv_honores": round(nb_rdv * TAUX_RDV_HONORES),
        "taux_absence": TAUX_ABSENCE_ESTIME,
        "taux_conversion": taux_conversion,
        "actes": actes,
        "total_actes": sum(a["nombre"] for a in actes),
        "total_ca_actes": sum(a["ca"] for a in actes),
        "evolution_ca": _pct_change(courant.get("ca", 0), precedent.get("ca", 0)) if precedent else None,
        "evolution_patients": (
            _pct_change(courant.get("patients", 0), precedent.get("patients", 0)) if precedent else None
        ),
    }


# ==================== SECTIONS HTML ====================

def _section_title(title: str, color: str = "#2563eb", subtitle: str = "") -> str:
    sub = f'<p style="margin:2px 0 0;font-size:12px;color:#94a3b8;">{subtitle}</p>' if subtitle else ""
    return f"""
            <table width="100%" cellpadding="0" cellspacing="0" style="border-top:1px solid #e2e8f0;padding-top:25px;">
              <tr>
                <td style="border-left:4px solid {color};padding-left:12px;">
                  <p style="margin:0;font-size:18px;font-weight:700;color:#1e293b;">{title}</p>{sub}
                </td>
              </tr>
            </table>"""


def _evolution_badge(evolution: Optional[float]) -> str:
    if evolution is None:
        return ""
    color = "#10b981" if evolution >= 0 else "#ef4444"
    sign = "+" if evolution >= 0 else ""
    return f'<p style="margin:2px 0 0;font-size:11px;font-weight:700;color:{color};">{sign}{evolution}%</p>'


def _bar(pct: float, color: str, label: str = "", min_width: int = 0) -> str:
    width = max(min(pct, 100), min_width)
    return f"""
            <table width="100%" cellpadding="0" cellspacing="0" style="background:#e2e8f0;border-radius:4px;overflow:hidden;">
              <tr><td style="width:{width}%;background:{color};padding:4px 8px;border-radius:4px;color:#fff;font-size:10px;font-weight:700;">{label}</td></tr>
            </table>"""


def build_comportement_cabinet(historique: List[Dict], kpi: Dict, metrics: Dict) -> str:
    """Résumé des 6 derniers mois: cartes, barres CA, tableau détaillé."""
    if not historique:
        return '<p style="margin:10px 0;font-size:13px;color:#94a3b8;text-align:center;">Aucune donnée historique disponible.</p>'

    courant = historique[-1]
    max_ca = max([h.get("ca", 0) for h in historique] + [1])
    heures = round(courant["heures"] / 60) if courant.get("heures") else round(float(kpi.get("heures_travaillees") or 0))

    cards = f"""
            <table width="100%" cellpadding="0" cellspacing="0" style="margin-top:10px;border:1px solid #e2e8f0;border-radius:12px;overflow:hidden;"><tr>
              <td width="25%" style="text-align:center;padding:18px 10px;background:#eff6ff;border-right:1px solid #e2e8f0;">
                <p style="margin:0;font-size:24px;font-weight:800;color:#2563eb;">{fmt_money(courant.get("ca", 0))} €</p>
                <p style="margin:4px 0 0;font-size:10px;color:#64748b;">💰 CA du mois</p>{_evolution_badge(metrics["evolution_ca"])}
              </td>
              <td width="25%" style="text-align:center;padding:18px 10px;background:#f0fdf4;border-right:1px solid #e2e8f0;">
                <p style="margin:0;font-size:24px;font-weight:800;color:#10b981;">{courant.get("patients", 0)}</p>
                <p style="margin:4px 0 0;font-size:10px;color:#64748b;">👥 Patients</p>{_evolution_badge(metrics["evolution_patients"])}
              </td>
              <td width="25%" style="text-align:center;padding:18px 10px;background:#faf5ff;border-right:1px solid #e2e8f0;">
                <p style="margin:0;font-size:24px;font-weight:800;color:#8b5cf6;">{courant.get("rdv") or kpi.get("nb_rdv", 0)}</p>
                <p style="margin:4px 0 0;font-size:10px;color:#64748b;">📅 RDV</p>
              </td>
              <td width="25%" style="text-align:center;padding:18px 10px;background:#fffbeb;">
                <p style="margin:0;font-size:24px;font-weight:800;color:#f59e0b;">{heures}h</p>
                <p style="margin:4px 0 0;font-size:10px;color:#64748b;">⏰ Heures</p>
              </td>
            </tr></table>"""

    bars = '<p style="margin:20px 0 8px;font-size:13px;font-weight:600;color:#475569;">📈 Évolution du CA (derniers mois)</p>'
    for item in historique:
        pct = round(item.get("ca", 0) / max_ca * 100)
        color = "#2563eb" if item["mois"] == courant["mois"] else "#93c5fd"
        bars += f'<p style="margin:6px 0 2px;font-size:11px;color:#64748b;">{mois_court(item["mois"])} - {fmt_money(item.get("ca", 0))} €</p>'
        bars += _bar(pct, color, f"{pct}%", min_width=2)

    rows = ""
    for i, item in enumerate(historique):
        background = "#ffffff" if i % 2 == 0 else "#f8fafc"
        rows += f"""
              <tr style="background:{background};border-bottom:1px solid #f1f5f9;">
                <td style="padding:8px 12px;font-size:12px;color:#334155;">{mois_court(item["mois"], full_year=True)}</td>
                <td style="padding:8px 12px;font-size:12px;font-weight:700;color:#1e293b;text-align:center;">{fmt_money(item.get("ca", 0))} €</td>
                <td style="padding:8px 12px;font-size:12px;color:#475569;text-align:center;">{item.get("patients", 0)}</td>
                <td style="padding:8px 12px;font-size:12px;color:#475569;text-align:center;">{item.get("rdv", 0)}</td>
                <td style="padding:8px 12px;font-size:12px;font-weight:600;color:#10b981;text-align:right;">{fmt_money(item.get("encaisse", 0))} €</td>
              </tr>"""

    table = f"""
            <table width="100%" cellpadding="0" cellspacing="0" style="margin-top:18px;border-collapse:collapse;border-radius:10px;overflow:hidden;">
              <tr style="background:#1e293b;">
                <td style="padding:8px 12px;font-size:11px;color:#fff;font-weight:600;">Mois</td>
                <td style="padding:8px 12px;font-size:11px;color:#fff;font-weight:600;text-align:center;">CA</td>
                <td style="padding:8px 12px;font-size:11px;color:#fff;font-weight:600;text-align:center;">Patients</td>
                <td style="padding:8px 12px;font-size:11px;color:#fff;font-weight:600;text-align:center;">RDV</td>
                <td style="padding:8px 12px;font-size:11px;color:#fff;font-weight:600;text-align:right;">Encaissé</td>
              </tr>{rows}
            </table>"""

    return cards + bars + table


def _build_actes(metrics: Dict) -> str:
    out = f'<p style="margin:15px 0 8px;font-size:13px;color:#475569;">CA Total <strong>{fmt_money(metrics["total_ca_actes"])}€</strong></p>'
    for acte in metrics["actes"]:
        out += f'<p style="margin:12px 0 4px;font-size:12px;color:#475569;">{acte["type"]} ({acte["nombre"]}) <strong style="color:{acte["color"]};">{fmt_money(acte["ca"])} €</strong></p>'
        out += _bar(acte["pct"], acte["color"], f'{acte["pct"]}%')

    rows = ""
    for i, acte in enumerate(metrics["actes"]):
        background = "#ffffff" if i % 2 == 0 else "#f8fafc"
        rows += f"""
              <tr style="background:{background};border-bottom:1px solid #f1f5f9;">
                <td style="padding:10px 14px;font-size:13px;color:#334155;">{acte["icon"]} {acte["type"]}</td>
                <td style="padding:10px 14px;font-size:13px;color:#475569;text-align:center;">{acte["nombre"]}</td>
                <td style="padding:10px 14px;font-size:13px;font-weight:700;color:#1e293b;text-align:right;">{fmt_money(acte["ca"])} €</td>
              </tr>"""

    out += f"""
            <table width="100%" cellpadding="0" cellspacing="0" style="margin-top:20px;border-collapse:collapse;border-radius:10px;overflow:hidden;">
              <tr style="background:#1e293b;">
                <td style="padding:10px 14px;font-size:12px;color:#fff;font-weight:600;">Type d'acte</td>
                <td style="padding:10px 14px;font-size:12px;color:#fff;font-weight:600;text-align:center;">Nombre</td>
                <td style="padding:10px 14px;font-size:12px;color:#fff;font-weight:600;text-align:right;">CA Généré</td>
              </tr>{rows}
              <tr style="background:#1e293b;">
                <td style="padding:10px 14px;font-size:13px;color:#fff;font-weight:800;">TOTAL</td>
                <td style="padding:10px 14px;font-size:13px;color:#fff;font-weight:700;text-align:center;">{metrics["total_actes"]}</td>
                <td style="padding:10px 14px;font-size:13px;color:#10b981;font-weight:800;text-align:right;">{fmt_money(metrics["total_ca_actes"])} €</td>
              </tr>
            </table>"""
    return out


def _build_recommandations(recommandations: List[str]) -> str:
    out = ""
    if recommandations:
        items = "".join(f'<li style="padding:3px 0;">{escape(r)}</li>' for r in recommandations)
        out += f"""
            <table width="100%" cellpadding="0" cellspacing="0" style="margin-top:18px;border:1px solid #e2e8f0;border-radius:10px;">
              <tr><td style="padding:18px 20px;">
                <p style="margin:0;font-size:14px;font-weight:700;color:#1e293b;">Analyse de vos indicateurs</p>
                <ul style="margin:8px 0 0;padding-left:20px;color:#475569;font-size:13px;">{items}</ul>
              </td></tr>
            </table>"""

    for border, background, title, points in RECOMMANDATIONS_FIXES:
        items = "".join(f'<li style="padding:3px 0;">{p}</li>' for p in points)
        out += f"""
            <table width="100%" cellpadding="0" cellspacing="0" style="margin-top:12px;border-left:4px solid {border};background:{background};border-radius:0 10px 10px 0;overflow:hidden;">
              <tr><td style="padding:18px 20px;">
                <p style="margin:0;font-size:14px;font-weight:700;color:#1e293b;">{title}</p>
                <ul style="margin:8px 0 0;padding-left:20px;color:#475569;font-size:13px;">{items}</ul>
              </td></tr>
            </table>"""
    return out


def build_report_html(report_data: Dict, generated_at: Optional[datetime] = None) -> str:
    """
    Construit le HTML complet du rapport.
    report_data = {
        "praticien_nom": "Dr Dupont",
        "cabinet_name": "Cabinet Dupont",
        "mois": "20250101",           # optionnel: aligne l'historique sur le mois du rapport
        "mois_label": "Janvier 2025",
        "kpi": {...},                 # snapshot de services.kpi.calculate_kpi (+ "objectif" optionnel)
        "recommandations": [...],
        "historique": [...],          # du plus ancien au plus récent
    }
    """
    kpi = report_data.get("kpi", {})
    historique = historique_du_mois(report_data.get("historique") or [], kpi, report_data.get("mois"))
    metrics = compute_report_metrics(kpi, historique)
    generated_at = generated_at or datetime.now()

    praticien_nom = escape(report_data.get("praticien_nom") or "Praticien")
    cabinet_name = escape(report_data.get("cabinet_name") or "Cabinet")
    periode = escape(report_data.get("mois_label") or "")
    statut_ok = metrics["statut_ok"]
    statut_color = "#16a34a" if statut_ok else "#d97706"
    ecart_sign = "+" if metrics["ecart"] >= 0 else "-"
    ecart_color = "#10b981" if metrics["ecart"] >= 0 else "#ef4444"
    progression = metrics["progression"]
    production_horaire = round(float(kpi.get("production_horaire") or 0))
    perf_color = metrics["performance_color"]
    conversion = metrics["taux_conversion"]

    return f"""<!DOCTYPE html>
<html lang="fr">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>RAPPORT DE PERFORMANCE - {praticien_nom} | {periode}</title>
</head>
<body style="margin:0;padding:0;background:#f1f5f9;font-family:'Segoe UI',Roboto,Arial,sans-serif;color:#1e293b;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background:#f1f5f9;padding:20px 0;">
    <tr><td align="center">
      <table width="650" cellpadding="0" cellspacing="0" style="background:#ffffff;border-radius:16px;overflow:hidden;box-shadow:0 4px 24px rgba(0,0,0,0.08);">

        <tr>
          <td style="background:linear-gradient(135deg,#2563eb,#3b82f6,#60a5fa);padding:40px 40px 35px;text-align:center;">
            <p style="margin:0;font-size:28px;font-weight:800;color:#ffffff;letter-spacing:1px;">RAPPORT DE PERFORMANCE</p>
            <p style="margin:8px 0 0;font-size:16px;color:rgba(255,255,255,0.9);">{praticien_nom}</p>
            <p style="margin:4px 0 0;font-size:13px;color:rgba(255,255,255,0.7);">Période : {periode}</p>
          </td>
        </tr>

        <tr>
          <td style="padding:30px 40px 0;">
            {_section_title("📊 Comportement du Cabinet", subtitle=f"{cabinet_name} - Évolution mensuelle")}
            {build_comportement_cabinet(historique, kpi, metrics)}
          </td>
        </tr>

        <tr>
          <td style="padding:30px 40px 0;">
            {_section_title("🎯 RÉSUMÉ EXÉCUTIF")}
            <p style="margin:12px 0 0;font-size:14px;color:{statut_color};font-weight:700;">Statut du cabinet : {"OK" if statut_ok else "À SURVEILLER"}</p>
            <p style="margin:6px 0 0;font-size:13px;color:#64748b;">{"Félicitations, votre cabinet a atteint ses objectifs ce mois-ci !" if statut_ok else "Attention, certains indicateurs nécessitent votre attention."}</p>
          </td>
        </tr>

        <tr>
          <td style="padding:25px 40px;text-align:center;">
            <table width="180" cellpadding="0" cellspacing="0" style="margin:0 auto;">
              <tr>
                <td style="text-align:center;padding:30px;border-radius:50%;border:6px solid {perf_color};">
                  <p style="margin:0;font-size:48px;font-weight:800;color:{perf_color};">{metrics["performance_globale"]}%</p>
                </td>
              </tr>
            </table>
            <p style="margin:12px 0 0;font-size:13px;color:#64748b;">Performance Globale</p>

            <table width="60%" cellpadding="0" cellspacing="0" style="margin:15px auto;border:2px solid {"#10b981" if statut_ok else "#f59e0b"};border-radius:12px;background:{"#f0fdf4" if statut_ok else "#fffbeb"};">
              <tr>
                <td style="padding:16px;text-align:center;">
                  <p style="margin:0;font-size:28px;">{"✅" if statut_ok else "⚠️"}</p>
                  <p style="margin:4px 0 0;font-size:16px;font-weight:700;color:{statut_color};">{"OK" if statut_ok else "À surveiller"}</p>
                  <p style="margin:2px 0 0;font-size:12px;color:{statut_color};">{"Objectif atteint" if statut_ok else "Objectif non atteint"}</p>
                </td>
              </tr>
            </table>

            <table width="100%" cellpadding="0" cellspacing="0" style="border-top:1px solid #e2e8f0;margin-top:15px;padding-top:15px;">
              <tr>
                <td width="25%" style="text-align:center;padding:10px;">
                  <p style="margin:0;font-size:18px;font-weight:800;color:#1e293b;">{fmt_money(metrics["ca"])} €</p>
                  <p style="margin:4px 0 0;font-size:10px;color:#94a3b8;text-transform:uppercase;letter-spacing:0.5px;">CA RÉALISÉ</p>
                </td>
                <td width="25%" style="text-align:center;padding:10px;">
                  <p style="margin:0;font-size:18px;font-weight:800;color:#1e293b;">{fmt_money(metrics["objectif"])} €</p>
                  <p style="margin:4px 0 0;font-size:10px;color:#94a3b8;text-transform:uppercase;letter-spacing:0.5px;">OBJECTIF</p>
                </td>
                <td width="25%" style="text-align:center;padding:10px;">
                  <p style="margin:0;font-size:18px;font-weight:800;color:#1e293b;">{progression}%</p>
                  <p style="margin:4px 0 0;font-size:10px;color:#94a3b8;text-transform:uppercase;letter-spacing:0.5px;">PROGRESSION</p>
                </td>
                <td width="25%" style="text-align:center;padding:10px;">
                  <p style="margin:0;font-size:18px;font-weight:800;color:#1e293b;">{kpi.get("nb_nouveaux_patients", 0)}</p>
                  <p style="margin:4px 0 0;font-size:10px;color:#94a3b8;text-transform:uppercase;letter-spacing:0.5px;">NOUVEAUX PATIENTS</p>
                </td>
              </tr>
            </table>
          </td>
        </tr>

        <tr>
          <td style="padding:10px 40px 0;">
            {_section_title("📈 PERFORMANCE FINANCIÈRE", color="#10b981")}
            <p style="margin:20px 0 6px;font-size:12px;color:#64748b;">Chiffre d'Affaires → {ecart_sign}{fmt_money(abs(metrics["ecart"]))} €</p>
            {_bar(progression, "linear-gradient(90deg,#2563eb,#3b82f6)", f"{progression}%")}
            <table width="100%" cellpadding="0" cellspacing="0" style="margin-top:20px;border-collapse:collapse;">
              <tr style="background:#f8fafc;">
                <td style="padding:10px 14px;font-size:12px;color:#64748b;font-weight:600;">Indicateur</td>
                <td style="padding:10px 14px;font-size:12px;color:#64748b;font-weight:600;text-align:center;">Valeur</td>
                <td style="padding:10px 14px;font-size:12px;color:#64748b;font-weight:600;text-align:center;">Objectif</td>
                <td style="padding:10px 14px;font-size:12px;color:#64748b;font-weight:600;text-align:right;">Écart</td>
              </tr>
              <tr style="border-bottom:1px solid #f1f5f9;">
                <td style="padding:12px 14px;font-size:13px;color:#334155;">CA Total</td>
                <td style="padding:12px 14px;font-size:13px;font-weight:700;color:#1e293b;text-align:center;">{fmt_money(metrics["ca"])} €</td>
                <td style="padding:12px 14px;font-size:13px;color:#94a3b8;text-align:center;">{fmt_money(metrics["objectif"])} €</td>
                <td style="padding:12px 14px;font-size:13px;font-weight:600;color:{ecart_color};text-align:right;">{ecart_sign}{fmt_money(abs(metrics["ecart"]))} €</td>
              </tr>
              <tr style="border-bottom:1px solid #f1f5f9;">
                <td style="padding:12px 14px;font-size:13px;color:#334155;">CA Horaire</td>
                <td style="padding:12px 14px;font-size:13px;font-weight:700;color:#1e293b;text-align:center;">{production_horaire} €/h</td>
                <td style="padding:12px 14px;font-size:13px;color:#94a3b8;text-align:center;">{PRODUCTION_REFERENCE} €/h</td>
                <td style="padding:12px 14px;font-size:13px;font-weight:600;color:{"#10b981" if production_horaire >= PRODUCTION_REFERENCE else "#ef4444"};text-align:right;">{production_horaire - PRODUCTION_REFERENCE:+d} €/h</td>
              </tr>
              <tr>
                <td style="padding:12px 14px;font-size:13px;color:#334155;">Taux de réalisation</td>
                <td style="padding:12px 14px;font-size:13px;font-weight:700;color:#1e293b;text-align:center;">{progression}%</td>
                <td style="padding:12px 14px;font-size:13px;color:#94a3b8;text-align:center;">100%</td>
                <td style="padding:12px 14px;font-size:13px;font-weight:600;color:{"#10b981" if progression >= 100 else "#ef4444"};text-align:right;">{progression - 100:+d}%</td>
              </tr>
            </table>
          </td>
        </tr>

        <tr>
          <td style="padding:30px 40px 0;">
            {_section_title("👥 ACTIVITÉ PATIENTS", color="#3b82f6")}
            <table width="100%" cellpadding="0" cellspacing="0" style="margin-top:18px;border:1px solid #e2e8f0;border-radius:12px;overflow:hidden;">
              <tr>
                <td width="25%" style="text-align:center;padding:18px 10px;background:#eff6ff;border-right:1px solid #e2e8f0;">
                  <p style="margin:0;font-size:28px;font-weight:800;color:#2563eb;">{kpi.get("nb_nouveaux_patients", 0)}</p>
                  <p style="margin:4px 0 0;font-size:10px;color:#64748b;">Nouveaux patients</p>
                </td>
                <td width="25%" style="text-align:center;padding:18px 10px;background:#f0fdf4;border-right:1px solid #e2e8f0;">
                  <p style="margin:0;font-size:28px;font-weight:800;color:#10b981;">{metrics["patients_traites"]}</p>
                  <p style="margin:4px 0 0;font-size:10px;color:#64748b;">Patients traités</p>
                </td>
                <td width="25%" style="text-align:center;padding:18px 10px;background:#faf5ff;border-right:1px solid #e2e8f0;">
                  <p style="margin:0;font-size:28px;font-weight:800;color:#8b5cf6;">{metrics["rdv_honores"]}</p>
                  <p style="margin:4px 0 0;font-size:10px;color:#64748b;">RDV honorés</p>
                </td>
                <td width="25%" style="text-align:center;padding:18px 10px;background:#fef2f2;">
                  <p style="margin:0;font-size:28px;font-weight:800;color:#ef4444;">{metrics["taux_absence"]}%</p>
                  <p style="margin:4px 0 0;font-size:10px;color:#64748b;">Taux d'absence</p>
                </td>
              </tr>
            </table>
            <p style="margin:18px 0 6px;font-size:12px;color:#64748b;">Taux de conversion patients <span style="color:#10b981;font-weight:700;">{conversion}%</span></p>
            {_bar(conversion, "linear-gradient(90deg,#10b981,#34d399)")}
            <p style="margin:6px 0 0;font-size:11px;color:#64748b;">Objectif : ≥ {OBJECTIF_CONVERSION}% | {"✅ Objectif atteint" if conversion >= OBJECTIF_CONVERSION else "⚠️ À améliorer"}</p>
          </td>
        </tr>

        <tr>
          <td style="padding:30px 40px 0;">
            {_section_title("🦷 RÉPARTITION DES ACTES", color="#f59e0b")}
            {_build_actes(metrics)}
          </td>
        </tr>

        <tr>
          <td style="padding:30px 40px 0;">
            {_section_title("💡 RECOMMANDATIONS", color="#f59e0b")}
            {_build_recommandations(report_data.get("recommandations") or [])}
          </td>
        </tr>

        <tr>
          <td style="padding:30px 40px 0;">
            {_section_title("📅 PROCHAINES ÉTAPES")}
            <table width="100%" cellpadding="0" cellspacing="0" style="margin-top:15px;">
              {"".join(f'<tr><td style="padding:10px 0;font-size:13px;color:#475569;border-top:1px solid #f1f5f9;">☐ {etape}</td></tr>' for etape in PROCHAINES_ETAPES)}
            </table>
          </td>
        </tr>

        <tr>
          <td style="padding:30px 40px 0;">
            <table width="100%" cellpadding="0" cellspacing="0" style="background:#1e293b;border-radius:12px;overflow:hidden;">
              <tr>
                <td style="padding:20px;text-align:center;">
                  <p style="margin:0;font-size:13px;color:#e2e8f0;">Rapport généré automatiquement par <strong>Efficience Analytics</strong></p>
                  <p style="margin:6px 0 0;font-size:11px;color:#94a3b8;">Date de génération : {generated_at.strftime("%d/%m/%Y %H:%M")}</p>
                </td>
              </tr>
            </table>
          </td>
        </tr>

        <tr>
          <td style="padding:15px 40px 25px;text-align:center;">
            <p style="margin:0;font-size:11px;color:#94a3b8;">© {generated_at.year} Efficience Dentaire - Plateforme sécurisée HDS Certifiée</p>
          </td>
        </tr>

      </table>
    </td></tr>
  </table>
</body>
</html>"""
