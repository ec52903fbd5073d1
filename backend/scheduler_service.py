"""
Scheduler pour les tâches automatiques Efficience Analytics
- Rapports mensuels: tous les jours à cron_heure, effectif le dernier jour du mois
- Vérification horaire de l'expiration du mode dynamique
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import SCHEDULER_TIMEZONE
from services.app_settings import get_app_settings, expire_dynamic_mode_if_due
from services.errors import InvalidInputError
from services.event_logger import log_event
from services.report_pipeline import run_monthly_reports
from services.verification_codes import issue_code, generate_numeric_code, PURPOSE_DYNAMIC_RENEWAL

logger = logging.getLogger("scheduler")

LOCAL_TZ = pytz.timezone(SCHEDULER_TIMEZONE)

MONTHLY_JOB_ID = "monthly_reports"
HOURLY_JOB_ID = "dynamic_mode_check"
DYNAMIC_MODE_TARGET = "dynamic_mode"
RENEWAL_CODE_HOURS = 24


def parse_heure(value: str) -> Tuple[int, int]:
    """'20:00' -> (20, 0)"""
    try:
        hour, minute = (int(part) for part in str(value).split(":"))
    except ValueError:
        raise InvalidInputError("Heure invalide (format attendu HH:MM)")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidInputError("Heure invalide (format attendu HH:MM)")
    return hour, minute


class TaskScheduler:
    """Gestionnaire de tâches planifiées"""

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone=LOCAL_TZ)

    def now(self) -> datetime:
        return datetime.now(LOCAL_TZ)

    def start(self, cron_heure: str = "20:00"):
        """Démarre le scheduler avec toutes les tâches"""
        self.schedule_monthly(cron_heure)

        # Expiration du mode dynamique, toutes les heures pile
        self.scheduler.add_job(
            self.check_dynamic_mode,
            CronTrigger(minute=0),
            id=HOURLY_JOB_ID,
            name="Vérification mode dynamique",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info(f"Scheduler démarré avec succès (rapports mensuels à {cron_heure})")

    def stop(self):
        """Arrête le scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler arrêté")

    def schedule_monthly(self, cron_heure: str):
        """(Re)programme le job mensuel; appelé au démarrage et à chaque changement de cron_heure."""
        hour, minute = parse_heure(cron_heure)
        trigger = CronTrigger(hour=hour, minute=minute, timezone=LOCAL_TZ)
        if self.scheduler.get_job(MONTHLY_JOB_ID):
            self.scheduler.reschedule_job(MONTHLY_JOB_ID, trigger=trigger)
            logger.info(f"Job mensuel reprogrammé à {hour:02d}:{minute:02d}")
            return
        self.scheduler.add_job(
            self.monthly_reports,
            trigger,
            id=MONTHLY_JOB_ID,
            name="Rapports mensuels",
            replace_existing=True
        )
        logger.info(f"Job mensuel programmé à {hour:02d}:{minute:02d}")

    # ==================== TÂCHES PLANIFIÉES ====================

    async def monthly_reports(self, now: Optional[datetime] = None):
        """Génère (et envoie si auto_email) les rapports le dernier jour du mois"""
        from email_service import email_service

        try:
            settings = await get_app_settings()
            summary = await run_monthly_reports(settings, now or self.now())
            if summary.get("skipped"):
                return summary

            email_service.send_monthly_summary(summary)
            if summary["errors"]:
                email_service.send_critical_alert(
                    "REPORT_BATCH_ERRORS",
                    f"{len(summary['errors'])} erreur(s) lors du traitement {summary['mois']}",
                    {e["praticien"]: e["error"] for e in summary["errors"]}
                )
            return summary

        except Exception as e:
            logger.error(f"[CRON] Erreur rapports mensuels: {str(e)}")
            email_service.send_critical_alert(
                "CRON_FAILURE",
                f"Échec du traitement mensuel des rapports: {str(e)}"
            )
            return None

    async def check_dynamic_mode(self, now: Optional[datetime] = None):
        """Désactive le mode dynamique expiré et envoie un code de renouvellement (24h)"""
        from email_service import email_service

        try:
            if not await expire_dynamic_mode_if_due(now):
                return None

            code = generate_numeric_code()
            await issue_code(
                PURPOSE_DYNAMIC_RENEWAL,
                DYNAMIC_MODE_TARGET,
                timedelta(hours=RENEWAL_CODE_HOURS),
                payload={"target_state": True},
                code=code,
                now=now,
            )
            await log_event("dynamic_mode_expired", "settings", "app")

            if email_service.send_renewal_code(code, hours=RENEWAL_CODE_HOURS):
                logger.info("[CRON] Mode dynamique expiré, code de renouvellement envoyé")
            else:
                logger.warning("[CRON] Mode dynamique expiré, envoi du code de renouvellement impossible")
            return code

        except Exception as e:
            logger.error(f"[CRON] Erreur vérification mode dynamique: {str(e)}")
            email_service.send_critical_alert(
                "CRON_FAILURE",
                f"Échec de la vérification du mode dynamique: {str(e)}"
            )
            return None


# Instance globale
task_scheduler = TaskScheduler()
