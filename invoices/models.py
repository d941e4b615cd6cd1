"""
invoices/models.py -- Domain dataclasses for the invoice dashboard.

These are pure data containers with zero logic. Validation lives in
invoices/validation.py, persistence in invoices/store.py, and the form
actions that tie them together in invoices/actions.py.

Result types are tagged unions of frozen dataclasses. Callers branch with
isinstance() so the failure path cannot be skipped by accident.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

# Canonical invoice statuses. All layers (api/, web/, CLI) import from here.
INVOICE_STATUSES = ("pending", "paid")

# Dashboard path whose rendered views are invalidated after every write.
INVOICES_PATH = "/dashboard/invoices"


@dataclass
class Customer:
    """A billable customer. id is None before the record is written."""

    name: str
    email: str
    id: Optional[str] = None


@dataclass
class Invoice:
    """A stored invoice.

    amount is integer cents and always > 0. date is the ISO calendar date
    (YYYY-MM-DD) the store assigned on insert; updates never change it.
    """

    id: str
    customer_id: str
    amount: int
    status: str  # "pending" | "paid"
    date: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None

    @property
    def amount_display(self) -> str:
        return f"${self.amount / 100:,.2f}"


@dataclass(frozen=True)
class InvoiceInput:
    """Validated, typed invoice fields ready for the store."""

    customer_id: str
    amount_in_cents: int
    status: str


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationSuccess:
    data: InvoiceInput


@dataclass(frozen=True)
class ValidationFailure:
    errors: dict[str, list[str]]


ValidationResult = Union[ValidationSuccess, ValidationFailure]


# ---------------------------------------------------------------------------
# Write result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WriteOk:
    """A statement ran. rowcount == 0 on update/delete means no such id."""

    rowcount: int
    invoice_id: Optional[str] = None


@dataclass(frozen=True)
class WriteFailed:
    """The database rejected or could not run the statement.

    integrity_error is True when a constraint rejected the row, which for an
    invoice means its customer_id names no customer.
    """

    operation: str  # "create" | "update" | "delete"
    reason: str
    integrity_error: bool = False


WriteResult = Union[WriteOk, WriteFailed]


# ---------------------------------------------------------------------------
# Action outcomes
# ---------------------------------------------------------------------------


@dataclass
class ActionState:
    """What an action hands back when control stays on the current form.

    code is one of "ok", "validation_error", "database_error", "not_found".
    """

    errors: dict[str, list[str]] = field(default_factory=dict)
    message: Optional[str] = None
    code: str = "ok"

    @property
    def ok(self) -> bool:
        return self.code == "ok"


@dataclass(frozen=True)
class Redirect:
    """Successful create/update: control moves to location."""

    location: str
    invoice_id: Optional[str] = None


ActionResult = Union[ActionState, Redirect]
