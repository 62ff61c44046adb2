import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from notive.core.config import OTP_DEV_LOG_CODE
from notive.core.observability import configure_logging
from notive.db.session import SessionLocal, engine, init_db
from notive.services.account_directory import LocalAccountDirectory
from notive.services.accounts import AccountService
from notive.services.delivery import CodeSender, LogCodeSender, SmtpCodeSender
from notive.services.login import LoginOrchestrator, LoginThrottle
from notive.services.notes import CalendarNoteService
from notive.services.otp import OtpService
from notive.services.record_store import RecordStore
from notive.services.security import SecurityService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: RecordStore
    directory: LocalAccountDirectory
    otp: OtpService
    security: SecurityService
    accounts: AccountService
    notes: CalendarNoteService

    def login_flow(self, throttle: LoginThrottle | None = None, **kwargs) -> LoginOrchestrator:
        """A fresh orchestrator for one login form; call ``close()`` when the form goes away."""
        return LoginOrchestrator(self.directory, self.otp, self.security, throttle=throttle, **kwargs)


def create_services(
    session_factory: Callable[[], Session] | None = None,
    *,
    sender: CodeSender | None = None,
    create_tables: bool = True,
) -> Services:
    configure_logging()
    if session_factory is None:
        session_factory = SessionLocal
        if create_tables:
            init_db(engine)

    if sender is None:
        sender = LogCodeSender() if OTP_DEV_LOG_CODE else SmtpCodeSender()

    store = RecordStore(session_factory)
    directory = LocalAccountDirectory(session_factory, sender=sender)
    logger.info("Notive services ready (sender=%s)", type(sender).__name__)
    return Services(
        store=store,
        directory=directory,
        otp=OtpService(store, sender=sender),
        security=SecurityService(store),
        accounts=AccountService(directory, store),
        notes=CalendarNoteService(store),
    )
