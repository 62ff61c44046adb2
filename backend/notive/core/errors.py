"""Error taxonomy shared by the login pipeline and the data services.

Every error carries a ``message`` that is safe to show to the user.
"""

GENERIC_LOGIN_MESSAGE = "Login failed. Please try again."
GENERIC_OTP_MESSAGE = "Invalid or expired verification code"

_KNOWN_SIGN_IN_MESSAGES = (
    ("Invalid login credentials", "Invalid email or password"),
    ("Email not confirmed", "Please verify your email before logging in"),
    ("Too many requests", "Too many login attempts. Please try again later"),
)


class NotiveError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(NotiveError):
    """Rejected locally before any remote call."""


class DirectoryError(NotiveError):
    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class RecordStoreError(NotiveError):
    pass


class LoginStateError(NotiveError):
    pass


class CooldownActiveError(NotiveError):
    def __init__(self, remaining_seconds: int) -> None:
        super().__init__(f"Please wait {remaining_seconds} seconds before trying again.")
        self.remaining_seconds = remaining_seconds


class LoginFailedError(NotiveError):
    def __init__(self, message: str, *, failed_attempts: int, cooldown_started: bool = False) -> None:
        super().__init__(message)
        self.failed_attempts = failed_attempts
        self.cooldown_started = cooldown_started


class OtpIssueError(NotiveError):
    def __init__(self, message: str = "Failed to generate verification code") -> None:
        super().__init__(message)


class OtpVerificationError(NotiveError):
    def __init__(self, message: str = GENERIC_OTP_MESSAGE) -> None:
        super().__init__(message)


def describe_sign_in_error(exc: BaseException | None) -> str:
    raw = getattr(exc, "message", None) or (str(exc) if exc is not None else "")
    if not raw:
        return GENERIC_LOGIN_MESSAGE
    for needle, friendly in _KNOWN_SIGN_IN_MESSAGES:
        if needle in raw:
            return friendly
    return raw
