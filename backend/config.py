"""
Configuration et utilitaires partagés
"""

import os
import math
import hashlib
import secrets
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'efficience_analytics')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# API
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
SESSION_DAYS = int(os.environ.get('SESSION_DAYS', '7'))

# Emails
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
SMTP_HOST = os.environ.get('SMTP_HOST', '')
SMTP_PORT = int(os.environ.get('SMTP_PORT', '465'))
SMTP_USER = os.environ.get('SMTP_USER', '')
SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
SMTP_USE_SSL = _env_bool('SMTP_USE_SSL', True)
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', SMTP_USER or 'noreply@efficience-dentaire.fr')
REPORT_RECIPIENT = os.environ.get('REPORT_RECIPIENT', '')
ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', '')
# Seul cet admin pilote le mode dynamique (modèles IA)
PRINCIPAL_ADMIN_EMAIL = os.environ.get('PRINCIPAL_ADMIN_EMAIL', ADMIN_EMAIL).lower()

# Rapports
REPORTS_DIR = Path(os.environ.get('REPORTS_DIR', str(ROOT_DIR / 'reports')))
PDF_RENDERING_ENABLED = _env_bool('PDF_RENDERING_ENABLED', True)
REPORT_TIMEOUT_SECONDS = float(os.environ.get('REPORT_TIMEOUT_SECONDS', '120'))

# Scheduler
SCHEDULER_ENABLED = _env_bool('SCHEDULER_ENABLED', True)
SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE', 'Europe/Paris')
DYNAMIC_MODE_DAYS = int(os.environ.get('DYNAMIC_MODE_DAYS', '15'))


# ==================== HELPERS ====================

def hash_password(password: str) -> str:
    """Hash un mot de passe avec SHA256"""
    return hashlib.sha256(password.encode()).hexdigest()

def generate_token() -> str:
    """Génère un token de session sécurisé"""
    return secrets.token_urlsafe(32)

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return now_utc().isoformat()


def parse_number(value) -> float:
    """
    Convertit une cellule (import TSV ou saisie) en nombre.
    Accepte la virgule décimale française et les espaces de milliers.
    Une valeur vide ou illisible vaut 0.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    cleaned = str(value).strip().replace(' ', '').replace(' ', '').replace('€', '')
    if not cleaned:
        return 0
    # Le dernier séparateur est le séparateur décimal: 1.234,56 (FR) ou 1,234.56 (EN)
    if ',' in cleaned and cleaned.rfind(',') > cleaned.rfind('.'):
        cleaned = cleaned.replace('.', '').replace(',', '.')
    else:
        cleaned = cleaned.replace(',', '')
    try:
        number = float(cleaned)
    except ValueError:
        return 0
    if not math.isfinite(number):
        return 0
    return int(number) if number.is_integer() else number
