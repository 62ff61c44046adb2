import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./notive.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
PASSWORD_RESET_EXPIRE_MINUTES = int(os.getenv("PASSWORD_RESET_EXPIRE_MINUTES", "30"))
PASSWORD_RESET_REDIRECT = os.getenv("PASSWORD_RESET_REDIRECT", "notive://reset-password")
PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "6"))
REQUIRE_EMAIL_CONFIRMATION = _env_bool("REQUIRE_EMAIL_CONFIRMATION", False)

OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", "10"))
OTP_DEV_LOG_CODE = _env_bool("OTP_DEV_LOG_CODE", False)

LOGIN_MAX_FAILED_ATTEMPTS = int(os.getenv("LOGIN_MAX_FAILED_ATTEMPTS", "3"))
LOGIN_COOLDOWN_SECONDS = int(os.getenv("LOGIN_COOLDOWN_SECONDS", "30"))

SUSPICIOUS_WINDOW_HOURS = int(os.getenv("SUSPICIOUS_WINDOW_HOURS", "24"))
SUSPICIOUS_FAILED_THRESHOLD = int(os.getenv("SUSPICIOUS_FAILED_THRESHOLD", "5"))
SUSPICIOUS_DISTINCT_IP_THRESHOLD = int(os.getenv("SUSPICIOUS_DISTINCT_IP_THRESHOLD", "3"))


def smtp_settings() -> dict:
    user = os.getenv("SMTP_USER")
    return {
        "host": os.getenv("SMTP_HOST"),
        "port": int(os.getenv("SMTP_PORT", "587")),
        "user": user,
        "password": os.getenv("SMTP_PASSWORD"),
        "sender": os.getenv("SMTP_FROM", user or ""),
        "use_tls": _env_bool("SMTP_USE_TLS", True),
    }


def get_secret_key() -> str:
    secret = os.getenv("SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY is not set")
    return secret
