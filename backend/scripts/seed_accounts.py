"""
Efficience Analytics - Seed comptes de démo (dev/staging uniquement)
Crée un admin et trois praticiens avec des identifiants prévisibles.
Run: python scripts/seed_accounts.py
Reset: python scripts/seed_accounts.py --reset
"""

import asyncio
import os
import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config import db, client, hash_password, now_iso  # noqa: E402

DEMO_PASSWORD = os.environ.get("DEMO_PASSWORD", "Efficience2026!")

DEMO_USERS = [
    {"email": "admin@demo.local", "name": "Admin Efficience", "role": "admin"},
    {"email": "jc@demo.local", "name": "Dr Jean Cabon", "role": "practitioner",
     "practitioner_code": "JC", "cabinet_name": "Cabinet Cabon", "objectif_mensuel": 45000},
    {"email": "dv@demo.local", "name": "Dr Denise Vidal", "role": "practitioner",
     "practitioner_code": "DV", "cabinet_name": "Cabinet Vidal"},
    {"email": "mb@demo.local", "name": "Dr Marc Bernard", "role": "practitioner",
     "practitioner_code": "MB", "cabinet_name": "Centre dentaire Bernard"},
]


async def reset():
    """Supprime les comptes @demo.local et leurs sessions"""
    users = await db.users.find({"email": {"$regex": "@demo\\.local$"}}, {"_id": 0, "id": 1}).to_list(100)
    await db.sessions.delete_many({"user_id": {"$in": [u["id"] for u in users]}})
    result = await db.users.delete_many({"email": {"$regex": "@demo\\.local$"}})
    print(f"Deleted {result.deleted_count} demo users")


async def seed():
    for u in DEMO_USERS:
        doc = {
            **u,
            "password": hash_password(DEMO_PASSWORD),
            "is_active": True,
            "is_verified": True,
        }
        existing = await db.users.find_one({"email": u["email"]})
        if existing:
            await db.users.update_one({"email": u["email"]}, {"$set": doc})
            print(f"  Updated: {u['email']} ({u['role']})")
        else:
            doc["id"] = str(uuid.uuid4())
            doc["created_at"] = now_iso()
            await db.users.insert_one(doc)
            print(f"  Created: {u['email']} ({u['role']})")


async def main():
    await reset()
    if "--reset" in sys.argv:
        print("Reset complete. Run without --reset to re-seed.")
    else:
        await seed()
        print(f"\n{len(DEMO_USERS)} demo users seeded. Password for all: {DEMO_PASSWORD}")
    client.close()


if __name__ == "__main__":
    asyncio.run(main())
