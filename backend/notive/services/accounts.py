import logging

from notive.core.config import PASSWORD_MIN_LENGTH
from notive.core.errors import RecordStoreError, ValidationError
from notive.core.observability import mask_email
from notive.core.utils import is_valid_email, normalize_email, utc_now_naive
from notive.schemas.auth import DirectoryUser
from notive.services.account_directory import AccountDirectory
from notive.services.record_store import RecordStore

logger = logging.getLogger(__name__)

PROFILES_COLLECTION = "profiles"


class AccountService:
    """Sign-up and account-screen operations on top of the directory and profiles."""

    def __init__(
        self,
        directory: AccountDirectory,
        store: RecordStore,
        *,
        password_min_length: int = PASSWORD_MIN_LENGTH,
    ) -> None:
        self._directory = directory
        self._store = store
        self._password_min_length = password_min_length

    def _check_password_length(self, password: str) -> None:
        if len(password) < self._password_min_length:
            raise ValidationError(f"Password must be at least {self._password_min_length} characters long")

    def register(self, username: str, email: str, password: str, confirm_password: str) -> DirectoryUser:
        if not username or not email or not password or not confirm_password:
            raise ValidationError("Please fill in all fields")
        clean_email = normalize_email(email)
        if not is_valid_email(clean_email):
            raise ValidationError("Please enter a valid email address")
        if password != confirm_password:
            raise ValidationError("Passwords do not match")
        self._check_password_length(password)

        username = username.strip()
        user = self._directory.sign_up(clean_email, password, {"username": username})

        now = utc_now_naive()
        try:
            self._store.insert(
                PROFILES_COLLECTION,
                [{
                    "id": user.id,
                    "username": username,
                    "email": clean_email,
                    "created_at": now,
                    "updated_at": now,
                }],
            )
        except RecordStoreError:
            # The account exists either way; the profile can be filled in later.
            logger.exception("Profile creation failed for %s", mask_email(clean_email))
        return user

    def get_profile(self, user_id: int) -> dict | None:
        return self._store.select_one(PROFILES_COLLECTION, {"id": user_id})

    def update_account(
        self,
        user: DirectoryUser,
        *,
        username: str | None = None,
        email: str | None = None,
        new_password: str | None = None,
    ) -> DirectoryUser:
        clean_email = None
        if email is not None and normalize_email(email) != user.email:
            clean_email = normalize_email(email)
            if not is_valid_email(clean_email):
                raise ValidationError("Please enter a valid email address")
        if new_password and new_password.strip():
            self._check_password_length(new_password)
        else:
            new_password = None

        updated = user
        if clean_email or new_password:
            updated = self._directory.update_user(email=clean_email, password=new_password)

        patch = {}
        if username and username.strip():
            patch["username"] = username.strip()
        if clean_email:
            patch["email"] = clean_email
        if patch:
            patch["updated_at"] = utc_now_naive()
            self._store.update(PROFILES_COLLECTION, {"id": user.id}, patch)
        return updated

    def sign_out(self) -> None:
        self._directory.sign_out()
