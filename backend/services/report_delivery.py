"""
Efficience Analytics - Envoi des rapports par email (SMTP)

Un email par rapport:
- sujet "Rapport de Performance - <Praticien> - <Mois>"
- corps HTML bref
- pièce jointe "Rapport_<code>_<mois>.pdf" (ou .html en repli)

Toute erreur SMTP est remontée en UpstreamFailureError: l'appelant décide
de marquer ou non le rapport comme envoyé.
"""

import asyncio
import logging
import smtplib
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Dict, List, Optional

from config import (
    SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, SMTP_USE_SSL,
    SENDER_EMAIL, REPORT_RECIPIENT,
)
from services.errors import UpstreamFailureError
from services.pdf_renderer import RenderedDocument

logger = logging.getLogger("report_delivery")


def attachment_filename(practitioner_code: str, mois: str, extension: str) -> str:
    return f"Rapport_{practitioner_code}_{mois}.{extension}"


def build_report_email(
    to_email: str,
    praticien_nom: str,
    mois_label: str,
    document: RenderedDocument,
    filename: str,
) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["From"] = SENDER_EMAIL
    msg["To"] = to_email
    msg["Subject"] = f"Rapport de Performance - {praticien_nom} - {mois_label}"

    body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; color: #1e293b;">
        <h2 style="color: #2563eb;">Rapport de Performance</h2>
        <p>Bonjour,</p>
        <p>Veuillez trouver ci-joint le rapport de performance de <strong>{escape(praticien_nom)}</strong>
        pour la période <strong>{mois_label}</strong>.</p>
        <p style="color: #64748b; font-size: 12px;">Efficience Analytics</p>
    </body>
    </html>
    """
    msg.attach(MIMEText(body, "html", "utf-8"))

    maintype, subtype = document.content_type.split(";")[0].split("/")
    attachment = MIMEBase(maintype, subtype)
    attachment.set_payload(document.content)
    encoders.encode_base64(attachment)
    attachment.add_header("Content-Disposition", f"attachment; filename={filename}")
    msg.attach(attachment)
    return msg


def _smtp_send(msg: MIMEMultipart, to_emails: List[str]):
    if SMTP_USE_SSL:
        server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=30)
    else:
        server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)
    with server:
        if not SMTP_USE_SSL:
            server.starttls()
        if SMTP_USER:
            server.login(SMTP_USER, SMTP_PASSWORD)
        server.send_message(msg, to_addrs=to_emails)


async def send_report_email(
    practitioner_code: str,
    praticien_nom: str,
    mois: str,
    mois_label: str,
    document: RenderedDocument,
    to_email: Optional[str] = None,
) -> Dict:
    """
    Envoie le rapport au destinataire configuré.
    Lève UpstreamFailureError si le transport n'est pas configuré ou échoue.
    """
    recipient = to_email or REPORT_RECIPIENT
    if not SMTP_HOST or not recipient:
        raise UpstreamFailureError("Transport email non configuré (SMTP_HOST / REPORT_RECIPIENT)")

    filename = attachment_filename(practitioner_code, mois, document.extension)
    msg = build_report_email(recipient, praticien_nom, mois_label, document, filename)

    try:
        # smtplib est bloquant: exécution hors de la boucle asyncio
        await asyncio.to_thread(_smtp_send, msg, [recipient])
    except smtplib.SMTPAuthenticationError as e:
        logger.error(f"[REPORT_MAIL_ERROR] Auth SMTP échouée: {str(e)}")
        raise UpstreamFailureError(f"Authentification SMTP échouée: {str(e)}")
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"[REPORT_MAIL_ERROR] praticien={practitioner_code} mois={mois}: {str(e)}")
        raise UpstreamFailureError(f"Erreur SMTP: {str(e)}")

    logger.info(f"[REPORT_SENT] praticien={practitioner_code} mois={mois} to={recipient} file={filename}")
    return {"success": True, "to": recipient, "filename": filename}
