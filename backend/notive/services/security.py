"""Login-attempt history and suspicious-activity alerts.

Every login submission leaves an immutable ``login_attempts`` row. Failed
submissions are followed by an evaluation of the trailing window; too many
failures, or failures from too many distinct addresses, raise one
``suspicious_login`` alert per episode.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from notive.core.config import (
    SUSPICIOUS_DISTINCT_IP_THRESHOLD,
    SUSPICIOUS_FAILED_THRESHOLD,
    SUSPICIOUS_WINDOW_HOURS,
)
from notive.core.errors import RecordStoreError
from notive.core.metrics import increment_counter
from notive.core.observability import mask_email
from notive.core.utils import utc_now_naive
from notive.schemas.security import DeviceInfo, serialize_attempts
from notive.services.device import UNKNOWN_IP, collect_device_info, resolve_ip_address
from notive.services.record_store import RecordStore

logger = logging.getLogger(__name__)

ATTEMPTS_COLLECTION = "login_attempts"
ALERTS_COLLECTION = "security_alerts"
ALERT_TYPE_SUSPICIOUS_LOGIN = "suspicious_login"


class SecurityService:
    def __init__(
        self,
        store: RecordStore,
        *,
        ip_resolver: Callable[[], str] = resolve_ip_address,
        device_info: Callable[[datetime], DeviceInfo] = collect_device_info,
        window_hours: int = SUSPICIOUS_WINDOW_HOURS,
        failed_threshold: int = SUSPICIOUS_FAILED_THRESHOLD,
        distinct_ip_threshold: int = SUSPICIOUS_DISTINCT_IP_THRESHOLD,
        now: Callable[[], datetime] = utc_now_naive,
    ) -> None:
        self._store = store
        self._ip_resolver = ip_resolver
        self._device_info = device_info
        self._window = timedelta(hours=window_hours)
        self._failed_threshold = failed_threshold
        self._distinct_ip_threshold = distinct_ip_threshold
        self._now = now

    def _client_ip(self) -> str:
        try:
            return self._ip_resolver() or UNKNOWN_IP
        except Exception as exc:
            logger.info("Could not get IP address: %s", exc)
            return UNKNOWN_IP

    def record_login_attempt(self, email: str, success: bool) -> bool:
        now = self._now()
        try:
            device = self._device_info(now).model_dump(mode="json")
        except Exception as exc:
            logger.info("Could not collect device info: %s", exc)
            device = None

        try:
            self._store.insert(
                ATTEMPTS_COLLECTION,
                [{
                    "email": email,
                    "ip_address": self._client_ip(),
                    "device_info": device,
                    "success": success,
                    "created_at": now,
                }],
            )
            if not success:
                self._evaluate(email)
        except RecordStoreError:
            logger.exception("Error recording login attempt for %s", mask_email(email))
            increment_counter("login_attempt_record_total", result="error")
            return False

        increment_counter("login_attempt_record_total", result="success" if success else "failure")
        return True

    def check_suspicious_activity(self, email: str) -> bool:
        try:
            return self._evaluate(email)
        except RecordStoreError:
            logger.exception("Error checking suspicious activity for %s", mask_email(email))
            return False

    def _evaluate(self, email: str) -> bool:
        attempts = self._store.select(
            ATTEMPTS_COLLECTION,
            {"email": email, "success": False, "created_at__gt": self._now() - self._window},
            order_by=("created_at",),
        )
        distinct_ips = {a["ip_address"] for a in attempts if a.get("ip_address")}

        if len(attempts) < self._failed_threshold and len(distinct_ips) < self._distinct_ip_threshold:
            return False

        self._write_alert(email, attempts)
        return True

    def send_security_alert(self, email: str, attempts: list[dict]) -> bool:
        try:
            return self._write_alert(email, attempts)
        except RecordStoreError:
            logger.exception("Error sending security alert for %s", mask_email(email))
            return False

    def _write_alert(self, email: str, attempts: list[dict]) -> bool:
        logger.warning(
            "[SECURITY ALERT] Suspicious login activity detected for %s (%d failed attempts)",
            mask_email(email),
            len(attempts),
        )
        profile = self._store.select_one("profiles", {"email": email})
        if not profile:
            increment_counter("security_alert_total", persisted="no_profile")
            return True

        now = self._now()
        # One alert per episode: an alert already inside the window covers this one.
        existing = self._store.select_one(
            ALERTS_COLLECTION,
            {"email": email, "alert_type": ALERT_TYPE_SUSPICIOUS_LOGIN, "created_at__gt": now - self._window},
        )
        if existing:
            increment_counter("security_alert_total", persisted="duplicate")
            return True

        self._store.insert(
            ALERTS_COLLECTION,
            [{
                "user_id": profile["id"],
                "email": email,
                "alert_type": ALERT_TYPE_SUSPICIOUS_LOGIN,
                "details": serialize_attempts(attempts),
                "created_at": now,
            }],
        )
        increment_counter("security_alert_total", persisted="yes")
        return True

    def recent_alerts(self, email: str) -> list[dict]:
        return self._store.select(ALERTS_COLLECTION, {"email": email}, order_by=("-created_at",))
