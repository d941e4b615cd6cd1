"""
invoices/validation.py -- Coerce raw form fields into a typed InvoiceInput.

Each field has its own validator function. A validator takes the raw value
and returns the coerced value or raises FieldError with the message shown
next to that field in the form. validate_invoice_fields() runs every
validator and collects all failures, so the user sees every problem at once.

Pure functions: no I/O and no store access. The same rule set serves the
create and update paths; the invoice id on update is supplied separately
and never passes through here.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from invoices.models import (
    INVOICE_STATUSES,
    InvoiceInput,
    ValidationFailure,
    ValidationResult,
    ValidationSuccess,
)

CUSTOMER_MESSAGE = "Please select a customer."
AMOUNT_MESSAGE = "Please enter an amount greater than $0."
STATUS_MESSAGE = "Please select an invoice status."

# Largest amount the invoices.amount Integer column holds on every backend
# (PostgreSQL INTEGER is 32-bit). $21,474,836.47.
MAX_AMOUNT_CENTS = 2_147_483_647


class FieldError(ValueError):
    """Raised by a field validator; carries the user-facing message."""


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------


def validate_customer_id(raw: Any) -> str:
    if raw is None:
        raise FieldError(CUSTOMER_MESSAGE)
    value = str(raw).strip()
    if not value:
        raise FieldError(CUSTOMER_MESSAGE)
    return value


def validate_amount(raw: Any) -> int:
    """Coerce an amount in dollars to integer cents.

    Decimal arithmetic keeps 19.99 -> 1999 exact. Half-up rounding is applied
    at the cent. Booleans are not amounts even though bool is an int subclass.
    Amounts above MAX_AMOUNT_CENTS are rejected with the amount message.
    """
    if raw is None or isinstance(raw, bool):
        raise FieldError(AMOUNT_MESSAGE)
    if isinstance(raw, float) and not math.isfinite(raw):
        raise FieldError(AMOUNT_MESSAGE)
    text = str(raw).strip()
    if not text:
        raise FieldError(AMOUNT_MESSAGE)
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise FieldError(AMOUNT_MESSAGE) from None
    if not amount.is_finite() or amount <= 0:
        raise FieldError(AMOUNT_MESSAGE)
    try:
        cents = int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))
    except ArithmeticError:  # decimal.Overflow on absurd exponents
        raise FieldError(AMOUNT_MESSAGE) from None
    # A positive sub-cent amount would be stored as 0.
    if cents <= 0 or cents > MAX_AMOUNT_CENTS:
        raise FieldError(AMOUNT_MESSAGE)
    return cents


def validate_status(raw: Any) -> str:
    if not isinstance(raw, str) or raw not in INVOICE_STATUSES:
        raise FieldError(STATUS_MESSAGE)
    return raw


# Field name -> validator. Order is the order errors are reported in.
FIELD_VALIDATORS: dict[str, Callable[[Any], Any]] = {
    "customer_id": validate_customer_id,
    "amount": validate_amount,
    "status": validate_status,
}


# ---------------------------------------------------------------------------
# Record validator
# ---------------------------------------------------------------------------


def validate_invoice_fields(fields: Mapping[str, Any]) -> ValidationResult:
    """Validate the customer_id, amount and status fields of a submitted form.

    Returns ValidationSuccess with an InvoiceInput, or ValidationFailure with
    a mapping of field name to messages. Never raises for bad input.
    Unknown keys in fields are ignored.
    """
    values: dict[str, Any] = {}
    errors: dict[str, list[str]] = {}
    for name, validator in FIELD_VALIDATORS.items():
        try:
            values[name] = validator(fields.get(name))
        except FieldError as exc:
            errors.setdefault(name, []).append(str(exc))

    if errors:
        return ValidationFailure(errors=errors)
    return ValidationSuccess(
        data=InvoiceInput(
            customer_id=values["customer_id"],
            amount_in_cents=values["amount"],
            status=values["status"],
        )
    )
