"""
auth/service.py -- Email/password credential authenticator.

AuthService is constructed once at startup with its UserStore and stored on
app.state; routes take it from there. There is no module-level auth handle.

authorize() has three terminal outcomes, and only one of them returns a User:

  invalid input -> None   (malformed email, short password or one over
                           bcrypt's 72-byte limit; no lookup)
  not found     -> None   (bcrypt still runs against DUMMY_HASH)
  mismatch      -> None
  match         -> User

A database failure during lookup is not "not found". It is logged and
re-raised as AuthLookupError so the framework's error handler answers 500.

Layer rule: no imports from api/, web/, invoices/, or cache/.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from auth.models import User
from auth.store import UserStore
from auth.tokens import DUMMY_HASH, password_too_long, verify_password

logger = logging.getLogger("invoicedesk.auth")

# Deliberately loose: one "@", no whitespace, a dot in the domain.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class AuthLookupError(RuntimeError):
    """The user lookup itself failed (database unreachable, bad schema, ...)."""


class Credentials(BaseModel):
    """Shape check for submitted credentials. Extra keys are ignored."""

    model_config = ConfigDict(str_strip_whitespace=False, extra="ignore")

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(max_length=255)


class AuthService:
    """Authenticate users against bcrypt hashes held in a UserStore."""

    def __init__(self, user_store: UserStore, min_password_length: int = 6) -> None:
        self.user_store = user_store
        self.min_password_length = min_password_length

    def authorize(self, credentials: Mapping[str, Any]) -> User | None:
        """Return the User whose stored hash matches, or None.

        credentials must carry "email" and "password" strings.
        Raises AuthLookupError if the user lookup fails.
        """
        try:
            parsed = Credentials.model_validate(dict(credentials))
        except ValidationError:
            logger.info("Invalid credentials")
            return None
        if len(parsed.password) < self.min_password_length or password_too_long(parsed.password):
            logger.info("Invalid credentials")
            return None

        user = self._get_user(parsed.email)
        if user is None:
            # Same bcrypt cost as a real check so timing does not leak the miss.
            verify_password(parsed.password, DUMMY_HASH)
            logger.info("Invalid credentials")
            return None

        if verify_password(parsed.password, user.hashed_password):
            return user

        logger.info("Invalid credentials")
        return None

    def _get_user(self, email: str) -> User | None:
        try:
            return self.user_store.get_by_email(email)
        except SQLAlchemyError as exc:
            logger.error("Failed to fetch user: %s", exc)
            raise AuthLookupError("Failed to fetch user.") from exc
