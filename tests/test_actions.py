"""Unit tests for invoices/actions.py -- InvoiceActions outcomes.

The store and view cache are MagicMocks so each test can assert exactly
which writes and invalidations happened.

Covers:
- validation failure -> ActionState(validation_error), store never called
- success -> one write, exactly one revalidate_path, then Redirect
- WriteFailed -> ActionState(database_error), no revalidation, no Redirect
- WriteFailed on a constraint -> customer field error (validation_error)
- update/delete of an unknown id -> ActionState(not_found), no revalidation
"""

from unittest.mock import MagicMock

import pytest

from invoices.actions import NOT_FOUND_MESSAGE, InvoiceActions
from invoices.models import INVOICES_PATH, ActionState, InvoiceInput, Redirect, WriteFailed, WriteOk
from invoices.validation import AMOUNT_MESSAGE, CUSTOMER_MESSAGE, STATUS_MESSAGE

VALID = {"customer_id": "cust-1", "amount": "19.99", "status": "paid"}
EXPECTED_INPUT = InvoiceInput(customer_id="cust-1", amount_in_cents=1999, status="paid")


@pytest.fixture
def store():
    s = MagicMock()
    s.create_invoice.return_value = WriteOk(rowcount=1, invoice_id="inv-1")
    s.update_invoice.return_value = WriteOk(rowcount=1, invoice_id="inv-1")
    s.delete_invoice.return_value = WriteOk(rowcount=1, invoice_id="inv-1")
    return s


@pytest.fixture
def cache():
    return MagicMock()


@pytest.fixture
def actions(store, cache):
    return InvoiceActions(store, cache)


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    def test_success_redirects_after_one_revalidation(self, actions, store, cache) -> None:
        outcome = actions.create(VALID)

        assert outcome == Redirect(INVOICES_PATH, invoice_id="inv-1")
        store.create_invoice.assert_called_once_with(EXPECTED_INPUT)
        cache.revalidate_path.assert_called_once_with(INVOICES_PATH)

    def test_validation_failure_never_touches_store(self, actions, store, cache) -> None:
        outcome = actions.create({"amount": "-3"})

        assert isinstance(outcome, ActionState)
        assert outcome.code == "validation_error"
        assert outcome.message == "Missing Fields. Failed to Create Invoice."
        assert outcome.errors == {
            "customer_id": [CUSTOMER_MESSAGE],
            "amount": [AMOUNT_MESSAGE],
            "status": [STATUS_MESSAGE],
        }
        store.create_invoice.assert_not_called()
        cache.revalidate_path.assert_not_called()

    def test_write_failure_is_reported_not_redirected(self, actions, store, cache) -> None:
        store.create_invoice.return_value = WriteFailed(operation="create", reason="disk I/O error")

        outcome = actions.create(VALID)

        assert isinstance(outcome, ActionState)
        assert outcome.code == "database_error"
        assert outcome.message == "Database Error: Failed to Create Invoice."
        assert outcome.errors == {}
        cache.revalidate_path.assert_not_called()

    def test_unknown_customer_is_a_field_error(self, actions, store, cache) -> None:
        store.create_invoice.return_value = WriteFailed(
            operation="create", reason="FOREIGN KEY constraint failed", integrity_error=True
        )

        outcome = actions.create(VALID)

        assert outcome == ActionState(
            errors={"customer_id": [CUSTOMER_MESSAGE]},
            message="Missing Fields. Failed to Create Invoice.",
            code="validation_error",
        )
        cache.revalidate_path.assert_not_called()

    def test_redirect_target_follows_configured_path(self, store, cache) -> None:
        outcome = InvoiceActions(store, cache, invoices_path="/invoices").create(VALID)
        assert outcome.location == "/invoices"
        cache.revalidate_path.assert_called_once_with("/invoices")


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_success_redirects_after_one_revalidation(self, actions, store, cache) -> None:
        outcome = actions.update("inv-1", VALID)

        assert outcome == Redirect(INVOICES_PATH, invoice_id="inv-1")
        store.update_invoice.assert_called_once_with("inv-1", EXPECTED_INPUT)
        cache.revalidate_path.assert_called_once_with(INVOICES_PATH)

    def test_validation_failure_never_touches_store(self, actions, store, cache) -> None:
        outcome = actions.update("inv-1", {**VALID, "status": "overdue"})

        assert outcome.code == "validation_error"
        assert outcome.message == "Missing Fields. Failed to Update Invoice."
        assert outcome.errors == {"status": [STATUS_MESSAGE]}
        store.update_invoice.assert_not_called()
        cache.revalidate_path.assert_not_called()

    def test_write_failure_is_reported(self, actions, store, cache) -> None:
        store.update_invoice.return_value = WriteFailed(operation="update", reason="locked")

        outcome = actions.update("inv-1", VALID)

        assert outcome == ActionState(message="Database Error: Failed to Update Invoice.", code="database_error")
        cache.revalidate_path.assert_not_called()

    def test_unknown_customer_is_a_field_error(self, actions, store, cache) -> None:
        store.update_invoice.return_value = WriteFailed(
            operation="update", reason="FOREIGN KEY constraint failed", integrity_error=True
        )

        outcome = actions.update("inv-1", VALID)

        assert outcome.code == "validation_error"
        assert outcome.message == "Missing Fields. Failed to Update Invoice."
        assert outcome.errors == {"customer_id": [CUSTOMER_MESSAGE]}
        cache.revalidate_path.assert_not_called()

    def test_unknown_id_is_not_found(self, actions, store, cache) -> None:
        store.update_invoice.return_value = WriteOk(rowcount=0, invoice_id="missing")

        outcome = actions.update("missing", VALID)

        assert outcome == ActionState(message=NOT_FOUND_MESSAGE, code="not_found")
        cache.revalidate_path.assert_not_called()


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_success_returns_message_after_one_revalidation(self, actions, store, cache) -> None:
        state = actions.delete("inv-1")

        assert state == ActionState(message="Deleted Invoice.")
        assert state.ok
        store.delete_invoice.assert_called_once_with("inv-1")
        cache.revalidate_path.assert_called_once_with(INVOICES_PATH)

    def test_write_failure_is_reported(self, actions, store, cache) -> None:
        store.delete_invoice.return_value = WriteFailed(operation="delete", reason="locked")

        state = actions.delete("inv-1")

        assert state.code == "database_error"
        assert state.message == "Database Error: Failed to Delete Invoice."
        assert not state.ok
        cache.revalidate_path.assert_not_called()

    def test_unknown_id_is_not_found(self, actions, store, cache) -> None:
        store.delete_invoice.return_value = WriteOk(rowcount=0, invoice_id="missing")

        state = actions.delete("missing")

        assert state.code == "not_found"
        cache.revalidate_path.assert_not_called()
