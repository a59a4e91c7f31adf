"""
Email service for the daily expiry digest and test messages.
Uses Flask-Mail for SMTP integration with UTF-8 support.
"""
import logging
from typing import List, Optional

from flask import current_app
from flask_mail import Mail, Message

from segvenc.exceptions import DeliveryError

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents 500 errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def send_html_email(recipients: List[str], subject: str, html: str, text: Optional[str] = None) -> str:
    """
    Send an HTML email to one or more recipients.

    Args:
        recipients: Destination addresses
        subject: Email subject (accents are fine, Flask-Mail encodes UTF-8)
        html: HTML body
        text: Plain text body (optional)

    Returns:
        "sent", or "skipped" when mail is disabled

    Raises:
        DeliveryError: If the SMTP relay fails
    """
    if not recipients:
        raise DeliveryError("Nenhum destinatário informado")

    if not _mail_enabled():
        logger.warning(f"[MAIL DISABLED] '{subject}' skipped for {recipients}")
        return "skipped"

    try:
        msg = Message(subject=subject, recipients=list(recipients), html=html, body=text)
        mail.send(msg)
        logger.info(f"[EMAIL] ✓ '{subject}' sent to {len(recipients)} recipient(s)")
        return "sent"
    except Exception as e:
        logger.exception(f"[EMAIL] ✗ Failed to send '{subject}' to {recipients}: {e}")
        raise DeliveryError(f"Falha ao enviar e-mail: {e}")


def send_test_email(to: str) -> bool:
    """Send a short test message; returns False instead of raising."""
    html = """
    <h2>Teste de envio</h2>
    <p>Se você recebeu esta mensagem, o envio de alertas está configurado.</p>
    """
    try:
        send_html_email([to], "Teste - Gestão de Vencimentos", html, text="Teste de envio de alertas.")
        return True
    except DeliveryError:
        return False
