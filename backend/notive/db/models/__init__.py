from notive.db.models.calendar_note import CalendarNote
from notive.db.models.login_attempt import LoginAttempt
from notive.db.models.otp_code import OtpCode
from notive.db.models.profile import Profile
from notive.db.models.security_alert import SecurityAlert
from notive.db.models.user import User

__all__ = ["CalendarNote", "LoginAttempt", "OtpCode", "Profile", "SecurityAlert", "User"]
