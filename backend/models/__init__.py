"""
Efficience Analytics - Models Package

Exporte les modèles de requête pour import facile
from models import UserLogin, ManualEntry, ReportGenerate, etc.
"""

# Auth & comptes
from .auth import (
    VALID_ROLES,
    UserLogin,
    PractitionerCreate,
    ProfileUpdate,
    ImpersonateRequest,
)

# Métriques
from .metrics import ManualEntry

# Patients
from .patient import PatientCreate, PatientUpdate

# Rapports
from .report import ReportBatch, ReportGenerate, ReportSend

# Paramètres & codes
from .settings import (
    SettingsUpdate,
    AiToggleRequest,
    CodeConfirm,
    DeletionRequest,
    DeletionConfirm,
)
