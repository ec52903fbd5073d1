"""
Efficience Analytics - Routes Rapports
Génération, envoi, liste, téléchargement. Un praticien n'accède qu'à ses propres rapports.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from models.report import ReportBatch, ReportGenerate, ReportSend
from routes.auth import get_current_user, require_admin
from services import report_pipeline
from services.kpi import practitioner_id

router = APIRouter(prefix="/reports", tags=["Reports"])


def _check_access(user: dict, praticien: str):
    if user.get("role") == "practitioner" and praticien != practitioner_id(user):
        raise HTTPException(status_code=403, detail="Accès refusé")


def _batch_response(results: list) -> dict:
    success = sum(1 for r in results if r["status"] == "success")
    return {"results": results, "success": success, "errors": len(results) - success}


@router.post("/generate")
async def generate(data: ReportGenerate, user: dict = Depends(get_current_user)):
    _check_access(user, data.praticien)
    result = await report_pipeline.generate_report(
        data.praticien, data.mois, report_type=data.type, generated_by=user["email"]
    )
    return {"message": "Rapport généré avec succès.", **result}


@router.post("/generate-all")
async def generate_all(data: ReportBatch, user: dict = Depends(require_admin)):
    results = await report_pipeline.generate_all_reports(data.mois, generated_by=user["email"])
    return {"message": f"{sum(1 for r in results if r['status'] == 'success')} rapports générés.",
            **_batch_response(results)}


@router.post("/send")
async def send(data: ReportSend, user: dict = Depends(require_admin)):
    """Envoie les rapports du mois non encore envoyés (tous si force)."""
    results = await report_pipeline.send_reports(data.mois, force=data.force, sent_by=user["email"])
    if not results:
        raise HTTPException(status_code=404, detail="Aucun rapport à envoyer pour ce mois")
    return {"message": f"{sum(1 for r in results if r['status'] == 'success')} rapports envoyés.",
            **_batch_response(results)}


@router.post("/send-now")
async def send_now(data: ReportBatch, user: dict = Depends(require_admin)):
    """Génère et envoie immédiatement le rapport de chaque praticien actif."""
    results = await report_pipeline.send_all_now(data.mois, sent_by=user["email"])
    return {"message": f"{sum(1 for r in results if r['status'] == 'success')} rapports envoyés.",
            **_batch_response(results)}


@router.get("/list")
async def list_reports(
    mois: Optional[str] = None,
    praticien: Optional[str] = None,
    user: dict = Depends(get_current_user)
):
    if user.get("role") == "practitioner":
        praticien = practitioner_id(user)
    return await report_pipeline.list_reports(praticien=praticien, mois=mois)


@router.get("/download/{report_id}")
async def download(report_id: str, user: dict = Depends(get_current_user)):
    report = await report_pipeline.get_report(report_id)
    _check_access(user, report["praticien"])

    content, content_type, filename = await report_pipeline.download_report(report_id)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/available-months")
async def available_months(user: dict = Depends(get_current_user)):
    return await report_pipeline.list_available_months()
