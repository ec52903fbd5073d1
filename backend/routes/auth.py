"""
Efficience Analytics - Routes Auth
Login / Logout / Session / Profil.
"""

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime, timezone, timedelta

from models.auth import UserLogin, ProfileUpdate
from config import db, hash_password, generate_token, now_iso, SESSION_DAYS, PRINCIPAL_ADMIN_EMAIL

router = APIRouter(prefix="/auth", tags=["Auth"])
security = HTTPBearer(auto_error=False)


# ==================== HELPERS ====================

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Récupère l'utilisateur connecté depuis le token."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Non authentifié")

    token = credentials.credentials
    session = await db.sessions.find_one({
        "token": token,
        "expires_at": {"$gt": now_iso()}
    })

    if not session:
        raise HTTPException(status_code=401, detail="Session expirée")

    user = await db.users.find_one(
        {"id": session["user_id"]},
        {"_id": 0, "password": 0}
    )

    if not user:
        raise HTTPException(status_code=401, detail="Utilisateur non trouvé")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Compte désactivé")

    return user


async def require_admin(user: dict = Depends(get_current_user)):
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès admin requis")
    return user


async def require_practitioner(user: dict = Depends(get_current_user)):
    if user.get("role") != "practitioner":
        raise HTTPException(status_code=403, detail="Accès praticien requis")
    return user


async def require_principal_admin(user: dict = Depends(require_admin)):
    """Seul l'administrateur principal peut piloter le mode dynamique."""
    if not PRINCIPAL_ADMIN_EMAIL or user.get("email", "").lower() != PRINCIPAL_ADMIN_EMAIL:
        raise HTTPException(status_code=403, detail="Réservé à l'administrateur principal")
    return user


async def create_session(user_id: str, **extra) -> str:
    token = generate_token()
    expires_at = (datetime.now(timezone.utc) + timedelta(days=SESSION_DAYS)).isoformat()

    await db.sessions.insert_one({
        "token": token,
        "user_id": user_id,
        "created_at": now_iso(),
        "expires_at": expires_at,
        **extra
    })
    return token


def public_user(user: dict) -> dict:
    return {
        "id": user["id"],
        "email": user["email"],
        "name": user.get("name", ""),
        "role": user.get("role", "practitioner"),
        "practitioner_code": user.get("practitioner_code"),
        "cabinet_name": user.get("cabinet_name", ""),
        "is_verified": user.get("is_verified", False),
    }


# ==================== LOGIN / LOGOUT ====================

@router.post("/login")
async def login(data: UserLogin):
    """Connexion utilisateur (email insensible à la casse)."""
    user = await db.users.find_one(
        {"email": data.email.lower().strip()},
        {"_id": 0}
    )

    if not user:
        raise HTTPException(status_code=401, detail="Email ou mot de passe incorrect")

    if user.get("password") != hash_password(data.password):
        raise HTTPException(status_code=401, detail="Email ou mot de passe incorrect")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Compte désactivé")

    token = await create_session(user["id"])
    await db.users.update_one({"id": user["id"]}, {"$set": {"last_login": now_iso()}})

    return {"token": token, "user": public_user(user)}


@router.post("/logout")
async def logout(
    user: dict = Depends(get_current_user),
    credentials: HTTPAuthorizationCredentials = Depends(security)
):
    if credentials:
        await db.sessions.delete_one({"token": credentials.credentials})
    return {"success": True}


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    return user


@router.put("/profile")
async def update_profile(data: ProfileUpdate, user: dict = Depends(get_current_user)):
    """Mise à jour du nom, du cabinet et/ou du mot de passe."""
    update_data = {}

    if data.name is not None:
        update_data["name"] = data.name.strip()
    if data.cabinet_name is not None:
        update_data["cabinet_name"] = data.cabinet_name.strip()

    if data.new_password is not None:
        stored = await db.users.find_one({"id": user["id"]}, {"_id": 0, "password": 1})
        if not data.current_password or stored.get("password") != hash_password(data.current_password):
            raise HTTPException(status_code=400, detail="Mot de passe actuel incorrect")
        update_data["password"] = hash_password(data.new_password)

    update_data["updated_at"] = now_iso()
    await db.users.update_one({"id": user["id"]}, {"$set": update_data})

    updated = await db.users.find_one({"id": user["id"]}, {"_id": 0, "password": 0})
    return {"success": True, "user": updated}
