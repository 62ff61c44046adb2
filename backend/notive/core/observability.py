import logging

from notive.core.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)


def mask_email(email: str) -> str:
    local, sep, domain = (email or "").partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def log_business_event(
    logger: logging.Logger,
    flow_id: str | None,
    *,
    event: str,
    **fields,
) -> None:
    chunks = [f"event={event}", f"flow_id={flow_id or '-'}"]
    for key, value in fields.items():
        chunks.append(f"{key}={value}")
    logger.info("business_event %s", " ".join(chunks))
