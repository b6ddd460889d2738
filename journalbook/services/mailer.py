# journalbook/services/mailer.py
import logging
import smtplib
import ssl
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from jinja2 import TemplateNotFound
from fastapi.templating import Jinja2Templates

from journalbook.background import run_sync
from journalbook.settings.config import settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _build_message(to_email: str, subject: str, text_body: str, html_body: Optional[str]) -> EmailMessage:
    msg = EmailMessage()
    # authenticated senders (Gmail and friends) reject a different From
    sender = settings.SMTP_USERNAME or settings.SMTP_FROM or ""
    msg["From"] = sender
    msg["To"] = to_email
    msg["Subject"] = subject
    if settings.SMTP_FROM and settings.SMTP_FROM != sender:
        msg["Reply-To"] = settings.SMTP_FROM
    msg.set_content(text_body or "")
    if html_body:
        msg.add_alternative(html_body, subtype="html")
    return msg


def _connect() -> smtplib.SMTP:
    host, port = settings.SMTP_HOST, settings.SMTP_PORT
    if settings.SMTP_USE_SSL:
        return smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=30)
    conn = smtplib.SMTP(host, port, timeout=30)
    if settings.SMTP_USE_TLS:
        conn.starttls(context=ssl.create_default_context())
    return conn


def send_email(to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> bool:
    """Deliver one message; False when SMTP refused it.

    With ``EMAIL_TRANSPORT=dummy`` the message is only logged.
    """
    if settings.EMAIL_TRANSPORT == "dummy":
        logger.info("DUMMY EMAIL (not sent) to=%s subject=%r\n%s", to_email, subject, text_body)
        return True

    msg = _build_message(to_email, subject, text_body, html_body)
    try:
        with _connect() as conn:
            if settings.SMTP_USERNAME:
                conn.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD or "")
            conn.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("SMTP delivery to %s failed", to_email)
        return False
    return True


async def send_login_code_email(email: str, code: str) -> bool:
    ctx = {"code": code, "ttl_minutes": settings.LOGIN_CODE_TTL_MINUTES, "book_title": settings.BOOK_TITLE}
    text = templates.get_template("email/login_code.txt").render(ctx)
    try:
        html = templates.get_template("email/login_code.html").render(ctx)
    except TemplateNotFound:
        html = None
    return await run_sync(send_email, email, "Your sign-in code", text, html)
