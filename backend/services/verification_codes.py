"""
Efficience Analytics - Codes de vérification à usage unique

Collection: verification_codes, un code actif par (purpose, target).
Usages:
- account_deletion: suppression définitive d'un compte (10 min)
- ai_toggle: changement d'état du mode dynamique demandé par l'admin (10 min)
- dynamic_renewal: code de renouvellement émis par le scheduler à l'expiration (24 h)
"""

import secrets
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional

from config import db, now_iso, now_utc
from services.errors import InvalidInputError

PURPOSE_ACCOUNT_DELETION = "account_deletion"
PURPOSE_AI_TOGGLE = "ai_toggle"
PURPOSE_DYNAMIC_RENEWAL = "dynamic_renewal"


def generate_numeric_code(digits: int = 6) -> str:
    """Code numérique aléatoire (source cryptographique), sans zéro en tête."""
    low = 10 ** (digits - 1)
    return str(low + secrets.randbelow(9 * low))


async def issue_code(
    purpose: str,
    target: str,
    ttl: timedelta,
    payload: Optional[Dict] = None,
    code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict:
    """Crée (ou remplace) le code actif pour (purpose, target)."""
    now = now or now_utc()
    doc = {
        "id": str(uuid.uuid4()),
        "purpose": purpose,
        "target": target,
        "code": code,
        "payload": payload or {},
        "expires_at": (now + ttl).isoformat(),
        "created_at": now_iso(),
    }
    await db.verification_codes.replace_one({"purpose": purpose, "target": target}, doc, upsert=True)
    doc.pop("_id", None)
    return doc


async def get_pending(purpose: str, target: str, now: Optional[datetime] = None) -> Optional[Dict]:
    """Code en attente non expiré (les codes expirés sont supprimés au passage)."""
    doc = await db.verification_codes.find_one({"purpose": purpose, "target": target}, {"_id": 0})
    if not doc:
        return None
    if datetime.fromisoformat(doc["expires_at"]) < (now or now_utc()):
        await db.verification_codes.delete_one({"purpose": purpose, "target": target})
        return None
    return doc


async def consume_code(purpose: str, target: str, code: str, now: Optional[datetime] = None) -> Dict:
    """
    Vérifie et consomme un code. Retourne le document (payload inclus).
    Lève InvalidInputError si aucun code, code expiré ou incorrect.
    """
    doc = await db.verification_codes.find_one({"purpose": purpose, "target": target}, {"_id": 0})
    if not doc:
        raise InvalidInputError("Aucun code en attente. Veuillez en redemander un.")

    if datetime.fromisoformat(doc["expires_at"]) < (now or now_utc()):
        await db.verification_codes.delete_one({"purpose": purpose, "target": target})
        raise InvalidInputError("Code expiré. Veuillez en redemander un.")

    if not doc.get("code") or doc["code"] != str(code).strip():
        raise InvalidInputError("Code incorrect.")

    await db.verification_codes.delete_one({"purpose": purpose, "target": target})
    return doc
