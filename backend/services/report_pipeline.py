"""
Efficience Analytics - Pipeline de rapports mensuels

KPI -> recommandations -> HTML -> PDF (ou repli HTML) -> email -> statut.

Cycle de vie d'un rapport (collection reports, une ligne par praticien/mois):
- absent -> généré (upsert, email_envoye=False uniquement à la création)
- généré -> envoyé (email_envoye=True après succès du transport)
- une régénération écrase contenu/pdf_path sans toucher email_envoye

Les traitements par lot isolent chaque praticien: une erreur (ou un timeout)
produit une entrée {"status": "error"} sans interrompre le lot.
"""

import asyncio
import base64
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from config import db, now_iso, now_utc, REPORTS_DIR, REPORT_TIMEOUT_SECONDS
from services.errors import NotFoundError
from services.event_logger import log_event
from services.kpi import calculate_kpi, get_historique, active_practitioners, practitioner_id
from services.pdf_renderer import RenderedDocument, render_report_document, is_pdf
from services.periods import normalize_mois, mois_label, current_mois, is_last_day_of_month
from services.recommendations import generate_recommendations
from services.report_composer import build_report_html, fmt_money
from services.report_delivery import send_report_email, attachment_filename

logger = logging.getLogger("report_pipeline")

REPORT_TYPES = ("mensuel", "trimestriel", "annuel")


def _error_detail(e: Exception) -> str:
    if isinstance(e, asyncio.TimeoutError):
        return f"Délai dépassé ({REPORT_TIMEOUT_SECONDS:g}s)"
    return getattr(e, "message", None) or str(e) or type(e).__name__


def _safe_code(code: str) -> str:
    return "".join(c if c.isalnum() else "_" for c in code)


async def find_practitioner(code: str) -> Dict:
    """Compte praticien par code (ou nom pour les comptes sans code)."""
    user = await db.users.find_one(
        {"role": "practitioner", "$or": [{"practitioner_code": code}, {"name": code}]},
        {"_id": 0, "password": 0},
    )
    if not user:
        raise NotFoundError(f"Praticien {code} introuvable")
    return user


# ==================== DOCUMENT ====================

async def compose_report(code: str, mois: str, user: Dict) -> Tuple[Dict, str]:
    """Calcule le contenu du rapport et son HTML."""
    kpi = await calculate_kpi(code, mois)
    if user.get("objectif_mensuel"):
        kpi["objectif"] = user["objectif_mensuel"]
    recommandations = generate_recommendations(kpi)
    historique = await get_historique(code, jusqu_a=mois)
    label = mois_label(mois)

    html = build_report_html({
        "praticien_nom": user.get("name") or code,
        "cabinet_name": user.get("cabinet_name"),
        "mois": mois,
        "mois_label": label,
        "kpi": kpi,
        "recommandations": recommandations,
        "historique": historique,
    })

    contenu = {
        "kpi": kpi,
        "recommandations": recommandations,
        "historique": historique,
        "resume": (
            f"{label}: CA de {fmt_money(kpi['ca_mensuel'])} € pour {kpi['nb_patients']} patients, "
            f"{kpi['nb_rdv']} rendez-vous et {kpi['heures_travaillees']} h travaillées."
        ),
    }
    return contenu, html


async def write_artifact(code: str, mois: str, document: RenderedDocument) -> Path:
    """Écrit le fichier rendu dans REPORTS_DIR (supprime l'autre format s'il existe)."""
    REPORTS_DIR.mkdir(parents=True, exist_ok=True)
    base = REPORTS_DIR / f"{_safe_code(code)}_{mois}"
    path = base.with_suffix(f".{document.extension}")
    await asyncio.to_thread(path.write_bytes, document.content)

    stale = base.with_suffix(".html" if document.is_pdf else ".pdf")
    if stale.exists():
        stale.unlink()
    return path


async def load_document(report: Dict) -> RenderedDocument:
    """Document stocké, re-rendu à partir des données si le fichier a disparu."""
    path = Path(report.get("pdf_path") or "")
    if report.get("pdf_path") and path.is_file():
        content = await asyncio.to_thread(path.read_bytes)
        if is_pdf(content):
            return RenderedDocument(content, "application/pdf", "pdf")
        return RenderedDocument(content, "text/html; charset=utf-8", "html")

    logger.info(f"[REPORT_RERENDER] Fichier absent pour {report['praticien']}/{report['mois']}")
    user = await find_practitioner(report["praticien"])
    _, html = await compose_report(report["praticien"], report["mois"], user)
    document = await render_report_document(html)
    new_path = await write_artifact(report["praticien"], report["mois"], document)
    await db.reports.update_one({"id": report["id"]}, {"$set": {"pdf_path": str(new_path)}})
    return document


# ==================== GÉNÉRATION ====================

async def _generate(code: str, mois: str, report_type: str = "mensuel", generated_by: str = "system") -> Tuple[Dict, RenderedDocument]:
    user = await find_practitioner(code)
    contenu, html = await compose_report(code, mois, user)
    document = await render_report_document(html)
    path = await write_artifact(code, mois, document)

    now = now_iso()
    await db.reports.update_one(
        {"praticien": code, "mois": mois},
        {
            "$set": {
                "type": report_type,
                "contenu": contenu,
                "pdf_path": str(path),
                "updated_at": now,
            },
            "$setOnInsert": {
                "id": str(uuid.uuid4()),
                "email_envoye": False,
                "date_envoi": None,
                "destinataire_email": None,
                "created_at": now,
            },
        },
        upsert=True,
    )
    report = await db.reports.find_one({"praticien": code, "mois": mois}, {"_id": 0})

    logger.info(f"[REPORT_GENERATED] praticien={code} mois={mois} format={document.extension}")
    await log_event("report_generated", "report", report["id"], user=generated_by, praticien=code,
                    details={"mois": mois, "format": document.extension})
    return report, document


async def generate_report(code: str, mois: str, report_type: str = "mensuel", generated_by: str = "system") -> Dict:
    """
    Génère (ou régénère) le rapport d'un praticien pour un mois.
    Lève InvalidInputError (mois invalide) ou NotFoundError (praticien inconnu).
    """
    mois = normalize_mois(mois)
    report, document = await _generate(code, mois, report_type, generated_by)
    contenu = report["contenu"]
    return {
        "report_id": report["id"],
        "praticien": code,
        "mois": mois,
        "kpi": contenu["kpi"],
        "recommandations": contenu["recommandations"],
        "historique": contenu["historique"],
        "content_type": document.content_type,
        "document_base64": base64.b64encode(document.content).decode("ascii"),
    }


async def generate_all_reports(mois: str, generated_by: str = "system") -> List[Dict]:
    """Génère les rapports de tous les praticiens actifs."""
    mois = normalize_mois(mois)
    results = []
    for practitioner in await active_practitioners():
        code = practitioner_id(practitioner)
        try:
            report, _ = await asyncio.wait_for(
                _generate(code, mois, generated_by=generated_by), REPORT_TIMEOUT_SECONDS
            )
            results.append({"praticien": code, "status": "success", "report_id": report["id"]})
        except Exception as e:
            logger.error(f"[REPORT_ERROR] Génération {code} {mois}: {_error_detail(e)}")
            results.append({"praticien": code, "status": "error", "error": _error_detail(e)})
    return results


# ==================== ENVOI ====================

async def deliver_report(report: Dict, document: Optional[RenderedDocument] = None, sent_by: str = "system") -> Dict:
    """Envoie un rapport et le marque envoyé (uniquement si le transport a réussi)."""
    user = await find_practitioner(report["praticien"])
    document = document or await load_document(report)

    result = await send_report_email(
        practitioner_code=report["praticien"],
        praticien_nom=user.get("name") or report["praticien"],
        mois=report["mois"],
        mois_label=mois_label(report["mois"]),
        document=document,
    )

    await db.reports.update_one(
        {"id": report["id"]},
        {"$set": {"email_envoye": True, "date_envoi": now_iso(), "destinataire_email": result["to"]}},
    )
    await log_event("report_sent", "report", report["id"], user=sent_by, praticien=report["praticien"],
                    details={"mois": report["mois"], "to": result["to"]})
    return result


async def send_reports(mois: str, force: bool = False, sent_by: str = "system") -> List[Dict]:
    """
    Envoie les rapports du mois non encore envoyés (tous si force=True).
    Liste vide si aucun rapport n'est sélectionné.
    """
    mois = normalize_mois(mois)
    query = {"mois": mois}
    if not force:
        query["email_envoye"] = False
    reports = await db.reports.find(query, {"_id": 0}).to_list(1000)

    results = []
    for report in reports:
        try:
            result = await asyncio.wait_for(deliver_report(report, sent_by=sent_by), REPORT_TIMEOUT_SECONDS)
            results.append({"praticien": report["praticien"], "status": "success", "to": result["to"]})
        except Exception as e:
            logger.error(f"[REPORT_ERROR] Envoi {report['praticien']} {mois}: {_error_detail(e)}")
            results.append({"praticien": report["praticien"], "status": "error", "error": _error_detail(e)})
    return results


async def _generate_and_send(code: str, mois: str, sent_by: str) -> Dict:
    report, document = await _generate(code, mois, generated_by=sent_by)
    return await deliver_report(report, document=document, sent_by=sent_by)


async def send_all_now(mois: str, sent_by: str = "system") -> List[Dict]:
    """Génère puis envoie immédiatement le rapport de chaque praticien actif."""
    mois = normalize_mois(mois)
    results = []
    for practitioner in await active_practitioners():
        code = practitioner_id(practitioner)
        try:
            result = await asyncio.wait_for(_generate_and_send(code, mois, sent_by), REPORT_TIMEOUT_SECONDS)
            results.append({"praticien": code, "status": "success", "to": result["to"]})
        except Exception as e:
            logger.error(f"[REPORT_ERROR] Envoi immédiat {code} {mois}: {_error_detail(e)}")
            results.append({"praticien": code, "status": "error", "error": _error_detail(e)})
    return results


# ==================== CONSULTATION ====================

async def list_reports(praticien: Optional[str] = None, mois: Optional[str] = None) -> List[Dict]:
    query = {}
    if praticien:
        query["praticien"] = praticien
    if mois:
        query["mois"] = normalize_mois(mois)
    return await db.reports.find(query, {"_id": 0}).sort("mois", -1).to_list(1000)


async def get_report(report_id: str) -> Dict:
    report = await db.reports.find_one({"id": report_id}, {"_id": 0})
    if not report:
        raise NotFoundError("Rapport non trouvé")
    return report


async def download_report(report_id: str) -> Tuple[bytes, str, str]:
    """Retourne (contenu, content-type, nom de fichier); PDF si signature %PDF, sinon HTML."""
    report = await get_report(report_id)
    document = await load_document(report)
    content_type = "application/pdf" if is_pdf(document.content) else "text/html; charset=utf-8"
    extension = "pdf" if is_pdf(document.content) else "html"
    return document.content, content_type, attachment_filename(report["praticien"], report["mois"], extension)


async def list_available_months() -> List[Dict]:
    """Mois présents dans analyse_realisation, du plus récent au plus ancien."""
    months = await db.analyse_realisation.distinct("mois")
    return [{"value": m, "label": mois_label(m)} for m in sorted(set(months), reverse=True)]


# ==================== TRAITEMENT MENSUEL ====================

async def run_monthly_reports(settings: Dict, now: Optional[datetime] = None) -> Dict:
    """
    Traitement du dernier jour du mois.
    Sans effet les autres jours ou si auto_generation est désactivé;
    l'envoi n'a lieu que si auto_email est activé.
    """
    now = now or now_utc()
    if not is_last_day_of_month(now.date()):
        return {"skipped": True, "reason": "not_last_day"}
    if not settings.get("auto_generation"):
        logger.info("[CRON] Génération automatique désactivée")
        return {"skipped": True, "reason": "auto_generation_disabled"}

    mois = current_mois(now)
    practitioners = await active_practitioners()
    logger.info(f"[CRON] Génération des rapports {mois} pour {len(practitioners)} praticiens")

    generated = await generate_all_reports(mois)
    nb_generated = sum(1 for r in generated if r["status"] == "success")

    sent = []
    if settings.get("auto_email"):
        sent = await send_reports(mois)
    nb_sent = sum(1 for r in sent if r["status"] == "success")

    summary = {
        "skipped": False,
        "mois": mois,
        "practitioners": len(practitioners),
        "generated": nb_generated,
        "sent": nb_sent,
        "errors": [r for r in generated + sent if r["status"] == "error"],
    }

    if settings.get("auto_email"):
        consistent = nb_generated == nb_sent == len(practitioners)
    else:
        consistent = nb_generated == len(practitioners)
    if consistent:
        logger.info(f"[CRON] Cohérence OK: {nb_generated} générés, {nb_sent} envoyés, {len(practitioners)} praticiens")
    else:
        logger.warning(
            f"[CRON] Incohérence: {nb_generated} générés, {nb_sent} envoyés, {len(practitioners)} praticiens"
        )
    summary["consistent"] = consistent
    return summary
