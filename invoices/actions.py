"""
invoices/actions.py -- Form actions for creating, updating and deleting invoices.

An action is the whole server-side handling of one form submission:
validate -> persist -> invalidate the invoice list view -> hand back either a
Redirect (control leaves the form) or an ActionState (the form is shown again
with errors or a message).

InvoiceActions is built once at startup with its store and view cache and
handed to the routes through app.state. Nothing here is a module-level
singleton, so tests build their own with fakes.

Failure handling:
  - Validation failures never reach the store.
  - A customer_id the database does not know is reported against the
    customer field as a "validation_error", like an empty one.
  - Any other WriteFailed from the store becomes a "database_error"
    ActionState. The view is not invalidated and no redirect happens, so the
    user is never told a failed write succeeded.
  - update/delete of an id that does not exist is "not_found".
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from invoices.models import (
    INVOICES_PATH,
    ActionResult,
    ActionState,
    Redirect,
    ValidationFailure,
    WriteFailed,
)
from invoices.validation import CUSTOMER_MESSAGE, validate_invoice_fields

if TYPE_CHECKING:
    from cache.store import ViewCache
    from invoices.store import InvoiceStore

logger = logging.getLogger("invoicedesk.invoices")

NOT_FOUND_MESSAGE = "Invoice not found."


class InvoiceActions:
    """Create/update/delete invoice actions bound to a store and a view cache."""

    def __init__(self, store: InvoiceStore, view_cache: ViewCache, invoices_path: str = INVOICES_PATH) -> None:
        self.store = store
        self.view_cache = view_cache
        self.invoices_path = invoices_path

    def create(self, fields: Mapping[str, Any]) -> ActionResult:
        validated = validate_invoice_fields(fields)
        if isinstance(validated, ValidationFailure):
            logger.debug("Create rejected: %s", validated.errors)
            return ActionState(
                errors=validated.errors,
                message="Missing Fields. Failed to Create Invoice.",
                code="validation_error",
            )

        result = self.store.create_invoice(validated.data)
        if isinstance(result, WriteFailed) and result.integrity_error:
            return _unknown_customer("Create")
        if isinstance(result, WriteFailed):
            return ActionState(message="Database Error: Failed to Create Invoice.", code="database_error")

        logger.info("Created invoice %s", result.invoice_id)
        self.view_cache.revalidate_path(self.invoices_path)
        return Redirect(self.invoices_path, invoice_id=result.invoice_id)

    def update(self, invoice_id: str, fields: Mapping[str, Any]) -> ActionResult:
        validated = validate_invoice_fields(fields)
        if isinstance(validated, ValidationFailure):
            logger.debug("Update of %s rejected: %s", invoice_id, validated.errors)
            return ActionState(
                errors=validated.errors,
                message="Missing Fields. Failed to Update Invoice.",
                code="validation_error",
            )

        result = self.store.update_invoice(invoice_id, validated.data)
        if isinstance(result, WriteFailed) and result.integrity_error:
            return _unknown_customer("Update")
        if isinstance(result, WriteFailed):
            return ActionState(message="Database Error: Failed to Update Invoice.", code="database_error")
        if result.rowcount == 0:
            logger.info("Update of unknown invoice %s", invoice_id)
            return ActionState(message=NOT_FOUND_MESSAGE, code="not_found")

        logger.info("Updated invoice %s", invoice_id)
        self.view_cache.revalidate_path(self.invoices_path)
        return Redirect(self.invoices_path, invoice_id=invoice_id)

    def delete(self, invoice_id: str) -> ActionState:
        result = self.store.delete_invoice(invoice_id)
        if isinstance(result, WriteFailed):
            return ActionState(message="Database Error: Failed to Delete Invoice.", code="database_error")
        if result.rowcount == 0:
            logger.info("Delete of unknown invoice %s", invoice_id)
            return ActionState(message=NOT_FOUND_MESSAGE, code="not_found")

        logger.info("Deleted invoice %s", invoice_id)
        self.view_cache.revalidate_path(self.invoices_path)
        return ActionState(message="Deleted Invoice.")


def _unknown_customer(verb: str) -> ActionState:
    return ActionState(
        errors={"customer_id": [CUSTOMER_MESSAGE]},
        message=f"Missing Fields. Failed to {verb} Invoice.",
        code="validation_error",
    )
