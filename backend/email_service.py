"""
Service d'emails SendGrid pour Efficience Analytics
- Codes de vérification (suppression de compte, mode dynamique)
- Code de renouvellement du mode dynamique (émis par le scheduler)
- Alertes (échec d'un job planifié)
- Bilan du traitement mensuel des rapports

Les rapports eux-mêmes partent par SMTP (services/report_delivery.py).
"""

import logging
from datetime import datetime, timezone
from html import escape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from config import SENDGRID_API_KEY, SENDER_EMAIL, ADMIN_EMAIL

logger = logging.getLogger("email_service")

BASE_STYLE = """
                body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }}
                .container {{ max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; overflow: hidden; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
                .header {{ background: {header}; color: white; padding: 25px; text-align: center; }}
                .header h1 {{ margin: 0; font-size: 22px; }}
                .content {{ padding: 30px; color: #1F2937; }}
                .code {{ font-size: 36px; font-weight: bold; letter-spacing: 8px; text-align: center; background: #EFF6FF; color: #1E40AF; padding: 20px; border-radius: 8px; margin: 20px 0; }}
                .alert-box {{ background: #FEF2F2; border-left: 4px solid #DC2626; padding: 15px; margin: 20px 0; border-radius: 4px; }}
                .footer {{ background: #F9FAFB; padding: 15px; text-align: center; font-size: 12px; color: #6B7280; }}
"""


def _page(title: str, header: str, body: str, footer: str) -> str:
    return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>{BASE_STYLE.format(header=header)}</style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h1>{title}</h1></div>
                <div class="content">
                    <p style="color: #9CA3AF; font-size: 14px;">{datetime.now(timezone.utc).strftime('%d/%m/%Y %H:%M')} UTC</p>
                    {body}
                </div>
                <div class="footer">{footer}</div>
            </div>
        </body>
        </html>
        """


class EmailService:
    """Service centralisé pour l'envoi d'emails administratifs"""

    def __init__(self):
        self.api_key = SENDGRID_API_KEY
        self.sender = SENDER_EMAIL
        self.admin_recipient = ADMIN_EMAIL

    def _send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Envoie un email via SendGrid"""
        if not self.api_key:
            logger.error("SENDGRID_API_KEY non configurée")
            return False
        if not to_email:
            logger.error(f"Aucun destinataire pour: {subject}")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender, "Efficience Analytics"),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            sg = SendGridAPIClient(self.api_key)
            response = sg.send(message)

            if response.status_code in [200, 202]:
                logger.info(f"Email envoyé à {to_email}: {subject}")
                return True
            logger.error(f"Erreur envoi email: {response.status_code}")
            return False

        except Exception as e:
            logger.error(f"Exception envoi email: {str(e)}")
            return False

    # ==================== CODES ====================

    def send_verification_code(self, to_email: str, code: str, action: str, minutes: int = 10) -> bool:
        """Code à 6 chiffres confirmant une action sensible (suppression, bascule du mode dynamique)."""
        subject = f"🔐 Code de vérification - {action}"
        body = f"""
                    <p>Une demande de <strong>{escape(action)}</strong> a été effectuée depuis votre compte administrateur.</p>
                    <div class="code">{code}</div>
                    <p>Ce code est valable <strong>{minutes} minutes</strong>.</p>
                    <p style="color: #6B7280; font-size: 13px;">Si vous n'êtes pas à l'origine de cette demande, ignorez cet email.</p>
        """
        html_content = _page("🔐 Vérification", "#1E40AF", body, "Efficience Analytics - Sécurité du compte")
        return self._send_email(to_email, subject, html_content)

    def send_renewal_code(self, code: str, hours: int = 24, to_email: str = None) -> bool:
        """Code de renouvellement envoyé à l'expiration du mode dynamique."""
        subject = "⏰ Mode dynamique expiré - Code de renouvellement"
        body = f"""
                    <p>Le mode dynamique (modèles IA) vient d'expirer et a été désactivé.</p>
                    <p>Pour le réactiver, saisissez ce code dans les paramètres administrateur :</p>
                    <div class="code">{code}</div>
                    <p>Ce code est valable <strong>{hours} heures</strong>.</p>
        """
        html_content = _page("⏰ Renouvellement du mode dynamique", "linear-gradient(135deg, #F59E0B, #D97706)",
                             body, "Efficience Analytics - Vérification horaire")
        return self._send_email(to_email or self.admin_recipient, subject, html_content)

    # ==================== ALERTES ====================

    def send_critical_alert(self, alert_type: str, message: str, details: dict = None) -> bool:
        """
        Alerte immédiate à l'administrateur.
        Types: CRON_FAILURE, REPORT_BATCH_ERRORS
        """
        subject = f"🚨 ALERTE - {alert_type}"

        details_html = ""
        if details:
            details_html = "<ul>"
            for key, value in details.items():
                details_html += f"<li><strong>{escape(str(key))}:</strong> {escape(str(value))}</li>"
            details_html += "</ul>"

        body = f"""
                    <div class="alert-box">
                        <strong>Type:</strong> {alert_type}<br>
                        <strong>Message:</strong> {escape(message)}
                    </div>
                    {f'<div><strong>Détails:</strong>{details_html}</div>' if details_html else ''}
        """
        html_content = _page("🚨 ALERTE", "#DC2626", body, "Efficience Analytics - Alertes automatiques")
        return self._send_email(self.admin_recipient, subject, html_content)

    # ==================== BILAN MENSUEL ====================

    def send_monthly_summary(self, summary: dict) -> bool:
        """
        Bilan du traitement de fin de mois.
        summary = {"mois": "20250101", "practitioners": 3, "generated": 3, "sent": 3, "errors": [...]}
        """
        errors_html = "".join(
            f"<li><strong>{escape(str(e.get('praticien')))}</strong>: {escape(str(e.get('error')))}</li>"
            for e in summary.get("errors", [])
        )
        subject = f"📊 Rapports mensuels {summary.get('mois', '')} - {summary.get('sent', 0)} envoyés"
        body = f"""
                    <p><strong>Praticiens actifs :</strong> {summary.get('practitioners', 0)}</p>
                    <p><strong>Rapports générés :</strong> {summary.get('generated', 0)}</p>
                    <p><strong>Rapports envoyés :</strong> {summary.get('sent', 0)}</p>
                    {f'<div class="alert-box"><strong>Erreurs</strong><ul>{errors_html}</ul></div>' if errors_html else ''}
        """
        html_content = _page("📊 Rapports mensuels", "linear-gradient(135deg, #3B82F6, #1E40AF)",
                             body, "Efficience Analytics - Traitement de fin de mois")
        return self._send_email(self.admin_recipient, subject, html_content)


# Instance globale
email_service = EmailService()
