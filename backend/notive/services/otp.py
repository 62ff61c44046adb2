"""One-time passcodes for the second login step.

At most one live code exists per email: storing a code removes the previous
ones first. A code is consumed by the first successful verification.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from notive.core.config import OTP_DEV_LOG_CODE, OTP_EXPIRE_MINUTES
from notive.core.errors import RecordStoreError
from notive.core.metrics import increment_counter
from notive.core.observability import mask_email
from notive.core.security import generate_otp_code
from notive.core.utils import utc_now_naive
from notive.services.delivery import CodeSender, LogCodeSender
from notive.services.record_store import RecordStore

logger = logging.getLogger(__name__)

OTP_COLLECTION = "otp_codes"
OTP_SUBJECT = "Your Verification Code"


def otp_message_body(code: str, expire_minutes: int = OTP_EXPIRE_MINUTES) -> str:
    return f"Your verification code is: {code}\n\nThis code will expire in {expire_minutes} minutes."


class OtpService:
    def __init__(
        self,
        store: RecordStore,
        *,
        sender: CodeSender | None = None,
        expire_minutes: int = OTP_EXPIRE_MINUTES,
        log_codes: bool = OTP_DEV_LOG_CODE,
        now: Callable[[], datetime] = utc_now_naive,
    ) -> None:
        self._store = store
        self._sender = sender or LogCodeSender()
        self._expire_minutes = expire_minutes
        self._log_codes = log_codes
        self._now = now

    @property
    def expire_minutes(self) -> int:
        return self._expire_minutes

    def generate_otp(self) -> str:
        return generate_otp_code()

    def store_otp(self, email: str, code: str) -> bool:
        now = self._now()
        try:
            self._store.replace(
                OTP_COLLECTION,
                {"email": email},
                [{
                    "email": email,
                    "code": code,
                    "expires_at": now + timedelta(minutes=self._expire_minutes),
                    "created_at": now,
                }],
            )
        except RecordStoreError:
            logger.exception("Error storing OTP for %s", mask_email(email))
            increment_counter("otp_issue_total", result="store_failed")
            return False
        increment_counter("otp_issue_total", result="stored")
        return True

    def verify_otp(self, email: str, code: str) -> bool:
        # Match and consume in one conditional delete so a code cannot be redeemed twice.
        try:
            removed = self._store.delete(
                OTP_COLLECTION,
                {"email": email, "code": code, "expires_at__gt": self._now()},
            )
        except RecordStoreError:
            logger.exception("Error verifying OTP for %s", mask_email(email))
            increment_counter("otp_verify_result_total", result="store_failed")
            return False
        verified = removed > 0
        increment_counter("otp_verify_result_total", result="success" if verified else "invalid_code")
        return verified

    def send_otp_email(self, email: str, code: str) -> bool:
        if self._log_codes:
            logger.info("[DEVELOPMENT] OTP for %s: %s", email, code)
        try:
            sent = self._sender.send(email, OTP_SUBJECT, otp_message_body(code, self._expire_minutes))
        except Exception as exc:
            logger.warning("OTP delivery to %s failed: %s", mask_email(email), exc)
            increment_counter("otp_delivery_total", result="error")
            return True
        if not sent:
            logger.warning("OTP delivery channel not configured; code for %s was not sent", mask_email(email))
        increment_counter("otp_delivery_total", result="sent" if sent else "not_sent")
        return True

    def purge_expired(self) -> int:
        try:
            return self._store.delete(OTP_COLLECTION, {"expires_at__lte": self._now()})
        except RecordStoreError:
            logger.exception("Error purging expired OTP codes")
            return 0
