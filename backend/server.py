"""
Efficience Analytics - API Backend

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError
import logging

from config import client, db, CORS_ORIGINS, SCHEDULER_ENABLED
from services.app_settings import get_app_settings, public_view
from services.errors import AnalyticsError

# Configuration logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("efficience")

app = FastAPI(
    title="Efficience Analytics",
    description="Analyse de performance et rapports mensuels des cabinets dentaires",
    version="1.0.0"
)

# ==================== ERREURS ====================

@app.exception_handler(AnalyticsError)
async def analytics_error_handler(request: Request, exc: AnalyticsError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(PyMongoError)
async def persistence_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"[DB_ERROR] {request.method} {request.url.path}: {str(exc)}")
    return JSONResponse(status_code=500, content={"detail": "Erreur de base de données"})


# ==================== IMPORT DES ROUTES ====================

from routes import auth, admin, data, practitioner, reports, event_log

api_router = APIRouter(prefix="/api")


@api_router.get("/health")
async def health():
    return {"status": "ok", "service": "Efficience Analytics"}


@api_router.get("/settings/public")
async def public_settings():
    """Paramètres visibles sans authentification (maintenance, IA, import)."""
    return public_view(await get_app_settings())


api_router.include_router(auth.router)
api_router.include_router(admin.router)
api_router.include_router(data.router)
api_router.include_router(practitioner.router)
api_router.include_router(reports.router)
api_router.include_router(event_log.router)
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== STARTUP / SHUTDOWN ====================

@app.on_event("startup")
async def startup():
    await db.users.create_index("email", unique=True)
    await db.sessions.create_index("token")
    await db.sessions.create_index("expires_at")
    await db.analyse_realisation.create_index([("praticien", 1), ("mois", 1)])
    for collection in ("analyse_rendez_vous", "analyse_jours_ouverts", "analyse_devis", "reports"):
        await db[collection].create_index([("praticien", 1), ("mois", 1)], unique=True)
    await db.patients.create_index([("praticien", 1), ("nom", 1), ("prenom", 1)])
    await db.verification_codes.create_index([("purpose", 1), ("target", 1)], unique=True)
    await db.event_log.create_index("created_at")
    logger.info("Index MongoDB créés")

    if SCHEDULER_ENABLED:
        from scheduler_service import task_scheduler
        settings = await get_app_settings()
        task_scheduler.start(settings.get("cron_heure", "20:00"))

    logger.info("Efficience Analytics démarré")


@app.on_event("shutdown")
async def shutdown():
    if SCHEDULER_ENABLED:
        from scheduler_service import task_scheduler
        task_scheduler.stop()
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
