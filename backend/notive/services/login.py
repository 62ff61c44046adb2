"""Two-step login flow for a single login form.

Password check, attempt recording, client-side cooldown, then a one-time
code that must be confirmed before the session is handed over::

    IDLE -> SUBMITTING -> OTP_PENDING -> VERIFYING -> DONE
                       \\-> COOLDOWN -> IDLE

The cooldown trips after ``max_failed_attempts`` consecutive password
failures and counts down once per second. OTP failures never count towards
it.
"""

import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import NoReturn
from uuid import uuid4

from notive.core.config import LOGIN_COOLDOWN_SECONDS, LOGIN_MAX_FAILED_ATTEMPTS, PASSWORD_RESET_REDIRECT
from notive.core.errors import (
    CooldownActiveError,
    DirectoryError,
    LoginFailedError,
    LoginStateError,
    OtpIssueError,
    OtpVerificationError,
    ValidationError,
    describe_sign_in_error,
)
from notive.core.metrics import increment_counter
from notive.core.observability import log_business_event, mask_email
from notive.core.utils import is_valid_email, normalize_email
from notive.schemas.auth import AuthSession, LoginChallenge
from notive.services.account_directory import AccountDirectory
from notive.services.otp import OtpService
from notive.services.security import SecurityService

logger = logging.getLogger(__name__)

OTP_CODE_LENGTH = 6


class LoginState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    OTP_PENDING = "otp_pending"
    VERIFYING = "verifying"
    DONE = "done"
    COOLDOWN = "cooldown"


class LoginThrottle:
    """State of one login form: current step, failure counter, cooldown clock."""

    def __init__(
        self,
        *,
        max_failed_attempts: int = LOGIN_MAX_FAILED_ATTEMPTS,
        cooldown_seconds: int = LOGIN_COOLDOWN_SECONDS,
    ) -> None:
        self._lock = threading.RLock()
        self.max_failed_attempts = max_failed_attempts
        self.cooldown_seconds = cooldown_seconds
        self._state = LoginState.IDLE
        self._failed_attempts = 0
        self._cooldown_remaining = 0

    @property
    def state(self) -> LoginState:
        with self._lock:
            return self._state

    @property
    def failed_attempts(self) -> int:
        with self._lock:
            return self._failed_attempts

    @property
    def cooldown_remaining(self) -> int:
        with self._lock:
            return self._cooldown_remaining

    @property
    def in_cooldown(self) -> bool:
        with self._lock:
            return self._state == LoginState.COOLDOWN

    def transition(self, state: LoginState) -> None:
        with self._lock:
            if self._state == LoginState.COOLDOWN and state != LoginState.COOLDOWN:
                raise LoginStateError("Login is cooling down")
            self._state = state

    def register_failure(self) -> bool:
        """Count a password failure; returns True when it starts a cooldown."""
        with self._lock:
            self._failed_attempts += 1
            if self._failed_attempts >= self.max_failed_attempts:
                self._failed_attempts = 0
                self._state = LoginState.COOLDOWN
                self._cooldown_remaining = self.cooldown_seconds
                return True
            self._state = LoginState.IDLE
            return False

    def register_success(self) -> None:
        with self._lock:
            self._failed_attempts = 0

    def tick(self) -> int:
        with self._lock:
            if self._state != LoginState.COOLDOWN:
                return 0
            self._cooldown_remaining = max(self._cooldown_remaining - 1, 0)
            if self._cooldown_remaining == 0:
                self._state = LoginState.IDLE
            return self._cooldown_remaining


class CooldownTicker:
    def __init__(self, throttle: LoginThrottle, *, interval: float = 1.0) -> None:
        self._throttle = throttle
        self._interval = interval
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="login-cooldown", daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=self._interval + 1)

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self._throttle.tick()
            if not self._throttle.in_cooldown:
                return


class LoginOrchestrator:
    def __init__(
        self,
        directory: AccountDirectory,
        otp_service: OtpService,
        security_service: SecurityService,
        *,
        throttle: LoginThrottle | None = None,
        ticker_factory: Callable[[LoginThrottle], CooldownTicker] | None = CooldownTicker,
    ) -> None:
        self._directory = directory
        self._otp = otp_service
        self._security = security_service
        self._throttle = throttle or LoginThrottle()
        self._ticker_factory = ticker_factory
        self._ticker: CooldownTicker | None = None
        self._pending_session: AuthSession | None = None
        self._email: str | None = None
        self.flow_id = uuid4().hex[:12]

    @property
    def state(self) -> LoginState:
        return self._throttle.state

    @property
    def throttle(self) -> LoginThrottle:
        return self._throttle

    @property
    def email(self) -> str | None:
        return self._email

    def _ensure_not_cooling_down(self) -> None:
        if self._throttle.in_cooldown:
            raise CooldownActiveError(self._throttle.cooldown_remaining)

    @staticmethod
    def _clean_email(email: str | None) -> str:
        clean = normalize_email(email)
        if not is_valid_email(clean):
            raise ValidationError("Please enter a valid email address")
        return clean

    def submit(self, email: str, password: str) -> LoginChallenge:
        self._ensure_not_cooling_down()
        if not email or not password:
            raise ValidationError("Please fill in all fields")
        clean_email = self._clean_email(email)

        increment_counter("login_submit_total")
        self._throttle.transition(LoginState.SUBMITTING)
        try:
            session = self._directory.sign_in_with_password(clean_email, password)
        except DirectoryError as exc:
            self._reject_credentials(clean_email, exc)
        except Exception:
            self._throttle.transition(LoginState.IDLE)
            raise

        self._throttle.register_success()
        self._security.record_login_attempt(clean_email, True)
        self._email = clean_email
        self._pending_session = session
        try:
            self._issue_code(clean_email)
        except OtpIssueError:
            self._pending_session = None
            self._throttle.transition(LoginState.IDLE)
            increment_counter("login_submit_result_total", result="otp_issue_failed")
            raise

        self._throttle.transition(LoginState.OTP_PENDING)
        increment_counter("login_submit_result_total", result="code_sent")
        log_business_event(logger, self.flow_id, event="login.submit", result="code_sent", email=mask_email(clean_email))
        return LoginChallenge(email=clean_email, expires_in_minutes=self._otp.expire_minutes, flow_id=self.flow_id)

    def _reject_credentials(self, email: str, exc: DirectoryError) -> NoReturn:
        # The attempt is recorded whatever happens; the caller always sees the directory error.
        self._security.record_login_attempt(email, False)
        tripped = self._throttle.register_failure()
        failed = self._throttle.failed_attempts

        message = describe_sign_in_error(exc)
        if tripped:
            message += f"\n\nToo many failed attempts. Please wait {self._throttle.cooldown_seconds} seconds."
            self._start_cooldown()
        else:
            message += f"\n\nFailed attempts: {failed}/{self._throttle.max_failed_attempts}"
            if failed == self._throttle.max_failed_attempts - 1:
                message += "\nWarning: One more failed attempt will trigger a cooldown."

        result = "cooldown" if tripped else "invalid_credentials"
        increment_counter("login_submit_result_total", result=result)
        log_business_event(logger, self.flow_id, event="login.submit", result=result, email=mask_email(email))
        raise LoginFailedError(message, failed_attempts=failed, cooldown_started=tripped) from exc

    def _start_cooldown(self) -> None:
        self._cancel_ticker()
        if self._ticker_factory is None:
            return
        self._ticker = self._ticker_factory(self._throttle)
        self._ticker.start()

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _issue_code(self, email: str) -> None:
        code = self._otp.generate_otp()
        if not self._otp.store_otp(email, code):
            raise OtpIssueError()
        self._otp.send_otp_email(email, code)

    def verify(self, code: str) -> AuthSession:
        code = (code or "").strip()
        if len(code) != OTP_CODE_LENGTH:
            raise ValidationError("Please enter the 6-digit code")
        if self.state != LoginState.OTP_PENDING or self._pending_session is None:
            raise LoginStateError("No verification in progress")

        self._throttle.transition(LoginState.VERIFYING)
        if not self._otp.verify_otp(self._email, code):
            self._throttle.transition(LoginState.OTP_PENDING)
            log_business_event(logger, self.flow_id, event="login.verify", result="invalid_code")
            raise OtpVerificationError()

        session, self._pending_session = self._pending_session, None
        self._directory.activate_session(session)
        self._throttle.transition(LoginState.DONE)
        log_business_event(logger, self.flow_id, event="login.verify", result="success", user_id=session.user.id)
        return session

    def resend_code(self) -> None:
        if self.state != LoginState.OTP_PENDING or not self._email:
            raise LoginStateError("No verification in progress")
        self._issue_code(self._email)
        log_business_event(logger, self.flow_id, event="login.resend_code", email=mask_email(self._email))

    def request_password_reset(self, email: str, redirect_to: str | None = None) -> None:
        self._ensure_not_cooling_down()
        if not email:
            raise ValidationError("Please enter your email address first")
        clean_email = self._clean_email(email)
        self._directory.reset_password_for_email(clean_email, redirect_to or PASSWORD_RESET_REDIRECT)
        log_business_event(logger, self.flow_id, event="login.password_reset", email=mask_email(clean_email))

    def close(self) -> None:
        self._cancel_ticker()
        self._pending_session = None
