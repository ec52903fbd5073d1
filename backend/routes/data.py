"""
Efficience Analytics - Routes Data (import de fichiers tabulés)
"""

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File

from routes.auth import get_current_user, require_admin
from services.app_settings import get_app_settings
from services.event_logger import log_event
from services.metric_import import check_kind, parse_tsv, import_batch, data_summary

router = APIRouter(prefix="/data", tags=["Data"])


@router.post("/import/{kind}")
async def import_file(
    kind: str,
    file: UploadFile = File(...),
    user: dict = Depends(require_admin)
):
    """Importe un export TSV (realisation, rendez-vous, jours-ouverts, devis, encours)."""
    check_kind(kind)

    settings = await get_app_settings()
    if not settings.get("import_enabled", True):
        raise HTTPException(status_code=403, detail="Import désactivé")

    raw = await file.read()
    if not raw:
        raise HTTPException(status_code=400, detail="Fichier requis")

    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        content = raw.decode("latin-1")

    result = await import_batch(kind, parse_tsv(content))
    await log_event("import", "metric", kind, user=user["email"],
                    details={"filename": file.filename, "count": result["count"]})

    return {"message": f"{result['count']} enregistrements importés avec succès.", "count": result["count"]}


@router.get("/summary")
async def summary(user: dict = Depends(get_current_user)):
    return await data_summary()
