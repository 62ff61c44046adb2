"""Account Directory: identity, password checks and session issuance.

``AccountDirectory`` is the contract the login pipeline and account screens
depend on. ``LocalAccountDirectory`` fulfils it from the ``users`` table,
hashing passwords with bcrypt and issuing signed bearer tokens. Tokens carry
the account's ``token_version``; signing out bumps it, revoking every token
issued before.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from notive.core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    PASSWORD_MIN_LENGTH,
    PASSWORD_RESET_EXPIRE_MINUTES,
    PASSWORD_RESET_REDIRECT,
    REQUIRE_EMAIL_CONFIRMATION,
)
from notive.core.errors import DirectoryError
from notive.core.observability import mask_email
from notive.core.security import create_access_token, decode_token, hash_password, verify_password
from notive.core.utils import utc_now_naive
from notive.db.models.user import User
from notive.schemas.auth import AuthSession, DirectoryUser
from notive.services.delivery import CodeSender, LogCodeSender

logger = logging.getLogger(__name__)

PURPOSE_ACCESS = "access"
PURPOSE_PASSWORD_RESET = "password_reset"


class AccountDirectory(Protocol):
    def sign_in_with_password(self, email: str, password: str) -> AuthSession: ...

    def sign_up(self, email: str, password: str, attributes: dict | None = None) -> DirectoryUser: ...

    def sign_out(self) -> None: ...

    def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None: ...

    def activate_session(self, session: AuthSession) -> None: ...

    def get_current_user(self) -> DirectoryUser | None: ...

    def update_user(self, *, email: str | None = None, password: str | None = None) -> DirectoryUser: ...


class LocalAccountDirectory:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        sender: CodeSender | None = None,
        require_confirmation: bool = REQUIRE_EMAIL_CONFIRMATION,
        password_min_length: int = PASSWORD_MIN_LENGTH,
        token_expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
        reset_expire_minutes: int = PASSWORD_RESET_EXPIRE_MINUTES,
        now: Callable[[], datetime] = utc_now_naive,
    ) -> None:
        self._session_factory = session_factory
        self._sender = sender or LogCodeSender()
        self._require_confirmation = require_confirmation
        self._password_min_length = password_min_length
        self._token_expire_minutes = token_expire_minutes
        self._reset_expire_minutes = reset_expire_minutes
        self._now = now
        self._current: AuthSession | None = None

    @property
    def current_session(self) -> AuthSession | None:
        return self._current

    def _check_password(self, password: str) -> None:
        if not password or len(password) < self._password_min_length:
            raise DirectoryError(
                f"Password should be at least {self._password_min_length} characters",
                code="weak_password",
            )

    def _issue_session(self, user: User) -> AuthSession:
        token = create_access_token(
            {"sub": user.email, "uid": user.id, "tv": int(user.token_version), "purpose": PURPOSE_ACCESS},
            expires_minutes=self._token_expire_minutes,
        )
        return AuthSession(
            access_token=token,
            expires_at=self._now() + timedelta(minutes=self._token_expire_minutes),
            user=DirectoryUser.model_validate(user),
        )

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.email == email).first()
            if not user or not verify_password(password, user.hashed_password):
                raise DirectoryError("Invalid login credentials", code="invalid_credentials")
            if self._require_confirmation and not user.email_confirmed:
                raise DirectoryError("Email not confirmed", code="email_not_confirmed")
            return self._issue_session(user)
        except SQLAlchemyError as exc:
            logger.exception("Directory sign-in lookup failed")
            raise DirectoryError("Authentication service unavailable", code="unavailable") from exc
        finally:
            db.close()

    def activate_session(self, session: AuthSession) -> None:
        """Make ``session`` the signed-in session for account operations.

        A password check alone never does this; the login pipeline activates
        the session once the second factor has been verified.
        """
        self._current = session

    def sign_up(self, email: str, password: str, attributes: dict | None = None) -> DirectoryUser:
        self._check_password(password)
        attributes = attributes or {}
        db = self._session_factory()
        try:
            if db.query(User).filter(User.email == email).first():
                raise DirectoryError("User already registered", code="user_exists")
            user = User(
                email=email,
                hashed_password=hash_password(password),
                username=attributes.get("username"),
                email_confirmed=not self._require_confirmation,
                token_version=0,
                created_at=self._now(),
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info("Directory account created for %s", mask_email(email))
            return DirectoryUser.model_validate(user)
        except IntegrityError as exc:
            db.rollback()
            raise DirectoryError("User already registered", code="user_exists") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Directory sign-up failed")
            raise DirectoryError("Sign up failed", code="unavailable") from exc
        finally:
            db.close()

    def sign_out(self) -> None:
        session, self._current = self._current, None
        if session is None:
            return
        db = self._session_factory()
        try:
            user = db.get(User, session.user.id)
            if user:
                user.token_version = int(user.token_version) + 1
                db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DirectoryError("Sign out failed", code="unavailable") from exc
        finally:
            db.close()

    def get_user_for_token(self, token: str, *, purpose: str = PURPOSE_ACCESS) -> DirectoryUser | None:
        payload = decode_token(token)
        if not payload or payload.get("purpose") != purpose:
            return None
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.email == payload.get("sub")).first()
            if not user or payload.get("tv") is None or int(payload["tv"]) != int(user.token_version):
                return None
            return DirectoryUser.model_validate(user)
        finally:
            db.close()

    def get_current_user(self) -> DirectoryUser | None:
        if self._current is None:
            return None
        user = self.get_user_for_token(self._current.access_token)
        if user is None:
            self._current = None
        return user

    def update_user(self, *, email: str | None = None, password: str | None = None) -> DirectoryUser:
        if self._current is None:
            raise DirectoryError("Not authenticated", code="not_authenticated")
        if password is not None:
            self._check_password(password)

        db = self._session_factory()
        try:
            user = db.get(User, self._current.user.id)
            if not user:
                raise DirectoryError("User not found", code="user_not_found")
            if email is not None and email != user.email:
                if db.query(User).filter(User.email == email).first():
                    raise DirectoryError("A user with this email address has already been registered", code="email_exists")
                user.email = email
                user.email_confirmed = not self._require_confirmation
            if password is not None:
                user.hashed_password = hash_password(password)
            db.commit()
            db.refresh(user)
            updated = DirectoryUser.model_validate(user)
            # The token is keyed by email, so an email change needs a fresh one.
            self._current = self._issue_session(user)
            return updated
        except SQLAlchemyError as exc:
            db.rollback()
            raise DirectoryError("Failed to update user", code="unavailable") from exc
        finally:
            db.close()

    def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as exc:
            raise DirectoryError("Failed to send reset instructions", code="unavailable") from exc
        finally:
            db.close()

        # Unknown addresses get the same silent success as known ones.
        if not user:
            logger.info("Password reset requested for unknown account %s", mask_email(email))
            return

        token = create_access_token(
            {"sub": user.email, "tv": int(user.token_version), "purpose": PURPOSE_PASSWORD_RESET},
            expires_minutes=self._reset_expire_minutes,
        )
        link = f"{redirect_to or PASSWORD_RESET_REDIRECT}?{urlencode({'token': token})}"
        body = (
            "Follow this link to reset your password:\n"
            f"{link}\n\nThe link expires in {self._reset_expire_minutes} minutes."
        )
        try:
            if not self._sender.send(user.email, "Reset your password", body):
                logger.warning("Password reset mail for %s was not sent: channel not configured", mask_email(email))
        except Exception as exc:
            logger.warning("Password reset mail for %s failed: %s", mask_email(email), exc)

    def complete_password_reset(self, token: str, new_password: str) -> DirectoryUser:
        self._check_password(new_password)
        found = self.get_user_for_token(token, purpose=PURPOSE_PASSWORD_RESET)
        if found is None:
            raise DirectoryError("Invalid or expired reset link", code="invalid_reset_token")
        db = self._session_factory()
        try:
            user = db.get(User, found.id)
            user.hashed_password = hash_password(new_password)
            user.token_version = int(user.token_version) + 1
            db.commit()
            db.refresh(user)
            return DirectoryUser.model_validate(user)
        except SQLAlchemyError as exc:
            db.rollback()
            raise DirectoryError("Failed to reset password", code="unavailable") from exc
        finally:
            db.close()

    def confirm_email(self, email: str) -> bool:
        db = self._session_factory()
        try:
            user = db.query(User).filter(User.email == email).first()
            if not user:
                return False
            user.email_confirmed = True
            db.commit()
            return True
        finally:
            db.close()
