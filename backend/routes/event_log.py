"""
Efficience Analytics - Routes Journal d'audit (admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from config import db
from routes.auth import require_admin
from services.event_logger import build_event_query, find_events

router = APIRouter(prefix="/event-log", tags=["EventLog"])


@router.get("")
async def list_events(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    praticien: Optional[str] = None,
    mois: Optional[str] = None,
    user_filter: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
    admin: dict = Depends(require_admin)
):
    query = build_event_query(action, entity_type, praticien, user_filter, mois)
    events, total = await find_events(query, limit=limit, skip=skip)
    return {"events": events, "count": len(events), "total": total}


@router.get("/actions")
async def action_types(admin: dict = Depends(require_admin)):
    return {"actions": sorted(await db.event_log.distinct("action"))}


@router.get("/{event_id}")
async def event_detail(event_id: str, admin: dict = Depends(require_admin)):
    event = await db.event_log.find_one({"id": event_id}, {"_id": 0})
    if not event:
        raise HTTPException(status_code=404, detail="Événement introuvable")
    return event
