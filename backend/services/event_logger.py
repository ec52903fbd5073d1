"""
Efficience Analytics - Journal d'audit

Une ligne par action sensible dans event_log:
génération/envoi de rapport, import, saisie manuelle, suppression de compte,
changement de paramètres, bascule ou expiration du mode dynamique.
"""

import re
import uuid
from typing import Dict, List, Optional, Tuple

from config import db, now_iso
from services.periods import normalize_mois


async def log_event(
    action: str,
    entity_type: str,
    entity_id: str,
    user: str = "system",
    praticien: str = "",
    details: Optional[Dict] = None,
):
    """
    action: report_generated, report_sent, import, manual_entry, account_deleted, ...
    entity_type: report | metric | user | settings
    user: email de l'auteur ("system" pour le scheduler)
    """
    await db.event_log.insert_one({
        "id": str(uuid.uuid4()),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "praticien": praticien,
        "user": user,
        "details": details or {},
        "created_at": now_iso(),
    })


def build_event_query(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    praticien: Optional[str] = None,
    user: Optional[str] = None,
    mois: Optional[str] = None,
) -> Dict:
    query = {}
    if action:
        query["action"] = action
    if entity_type:
        query["entity_type"] = entity_type
    if praticien:
        query["praticien"] = praticien
    if user:
        query["user"] = {"$regex": re.escape(user.strip()), "$options": "i"}
    if mois:
        # rapports/imports d'un mois donné (details.mois est canonique)
        query["details.mois"] = normalize_mois(mois)
    return query


async def find_events(query: Dict, limit: int = 100, skip: int = 0) -> Tuple[List[Dict], int]:
    events = await db.event_log.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)
    return events, await db.event_log.count_documents(query)
