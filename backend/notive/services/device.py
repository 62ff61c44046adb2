import logging
import platform
import socket
from datetime import datetime

from notive.core.utils import utc_now_naive
from notive.schemas.security import DeviceInfo

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"


def collect_device_info(now: datetime | None = None) -> DeviceInfo:
    system = platform.system() or "unknown"
    return DeviceInfo(
        platform=system.lower(),
        version=platform.release() or "unknown",
        brand=f"{system} Device",
        timestamp=now or utc_now_naive(),
    )


def resolve_ip_address() -> str:
    try:
        address = socket.gethostbyname(socket.gethostname())
    except OSError as exc:
        logger.debug("Could not resolve IP address: %s", exc)
        return UNKNOWN_IP
    return address[:64] if address else UNKNOWN_IP
