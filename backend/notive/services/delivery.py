import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from notive.core.config import smtp_settings

logger = logging.getLogger(__name__)


class CodeSender(Protocol):
    def send(self, email: str, subject: str, body: str) -> bool: ...


class SmtpCodeSender:
    """Sends mail through the SMTP relay configured in the environment.

    Returns False when SMTP is not configured; transport errors propagate.
    """

    def __init__(self, settings: dict | None = None) -> None:
        self._settings = settings

    def send(self, email: str, subject: str, body: str) -> bool:
        cfg = self._settings or smtp_settings()
        host, user, password, sender = cfg.get("host"), cfg.get("user"), cfg.get("password"), cfg.get("sender")
        if not host or not sender:
            return False

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = email
        msg.set_content(body)

        with smtplib.SMTP(host, int(cfg.get("port") or 587), timeout=10) as server:
            if cfg.get("use_tls", True):
                server.starttls()
            if user and password:
                server.login(user, password)
            server.send_message(msg)
        return True


class LogCodeSender:
    """Developer channel: writes the message to the log instead of mailing it."""

    def __init__(self, channel_logger: logging.Logger | None = None) -> None:
        self._logger = channel_logger or logger

    def send(self, email: str, subject: str, body: str) -> bool:
        self._logger.info("[DEVELOPMENT] mail to=%s subject=%r body=%r", email, subject, body)
        return True
