"""
auth/models.py -- Domain dataclass for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in invoices/models.py -- dataclasses own domain shape; stores and services
do the work.

Layer rule: no imports from api/, web/, invoices/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A dashboard login identity.

    email is unique and is what users type at the login form.
    hashed_password is a bcrypt hash; the plaintext is never stored.
    id is None before the record is written to the database.
    """

    name: str
    email: str
    hashed_password: str
    id: str | None = None
