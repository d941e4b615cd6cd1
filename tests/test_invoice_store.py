"""Unit tests for invoices/store.py -- InvoiceStore writes and reads.

Covers:
- create_invoice() stores integer cents and today's date, resolved per call
- update_invoice() overwrites customer/amount/status, keeps the date
- update/delete of a missing id -> WriteOk(rowcount=0)
- a foreign-key violation -> WriteFailed flagged integrity_error
- a dead engine or an amount too wide for the column -> WriteFailed, never raised
- list_invoices() search, ordering and pagination; count_invoice_pages()
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from invoices.models import Customer, InvoiceInput, WriteFailed, WriteOk
from invoices.store import PAGE_SIZE, InvoiceStore

# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    """In-memory InvoiceStore with two customers pre-loaded."""
    s = InvoiceStore("sqlite:///:memory:")
    s.acme_id = s.create_customer(Customer(name="Acme Corp", email="billing@acme.test"))
    s.globex_id = s.create_customer(Customer(name="Globex", email="ap@globex.test"))
    yield s
    s.close()


def _create(store: InvoiceStore, customer_id: str, cents: int = 1999, status: str = "pending") -> str:
    result = store.create_invoice(InvoiceInput(customer_id=customer_id, amount_in_cents=cents, status=status))
    assert isinstance(result, WriteOk)
    return result.invoice_id


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestCreateInvoice:
    def test_create_stores_cents_and_today(self, store) -> None:
        with patch("invoices.store._today_iso", return_value="2024-03-05"):
            invoice_id = _create(store, store.acme_id, cents=1999, status="paid")

        invoice = store.get_invoice(invoice_id)
        assert invoice is not None
        assert invoice.amount == 1999
        assert invoice.amount_display == "$19.99"
        assert invoice.status == "paid"
        assert invoice.date == "2024-03-05"
        assert invoice.customer_name == "Acme Corp"

    def test_date_resolved_at_call_time(self, store) -> None:
        with patch("invoices.store._today_iso", return_value="2024-01-01"):
            first = _create(store, store.acme_id)
        with patch("invoices.store._today_iso", return_value="2024-01-02"):
            second = _create(store, store.acme_id)
        assert store.get_invoice(first).date == "2024-01-01"
        assert store.get_invoice(second).date == "2024-01-02"

    def test_unknown_customer_returns_write_failed(self, store) -> None:
        """Foreign keys are enforced; the IntegrityError is returned, not raised."""
        result = store.create_invoice(InvoiceInput(customer_id="no-such-customer", amount_in_cents=100, status="paid"))
        assert isinstance(result, WriteFailed)
        assert result.operation == "create"
        assert result.integrity_error is True
        assert store.list_invoices() == []

    def test_closed_engine_returns_write_failed(self, store) -> None:
        with patch.object(store.engine, "connect", side_effect=OperationalError("SELECT 1", {}, Exception("down"))):
            result = store.create_invoice(InvoiceInput(customer_id=store.acme_id, amount_in_cents=100, status="paid"))
        assert isinstance(result, WriteFailed)
        assert "down" in result.reason
        assert result.integrity_error is False

    def test_amount_wider_than_64_bits_returns_write_failed(self, store) -> None:
        """sqlite3 raises a bare OverflowError here; it must not escape the store."""
        data = InvoiceInput(customer_id=store.acme_id, amount_in_cents=10**19, status="paid")
        result = store.create_invoice(data)
        assert isinstance(result, WriteFailed)
        assert result.integrity_error is False
        assert store.list_invoices() == []


class TestUpdateInvoice:
    def test_update_overwrites_fields_and_keeps_date(self, store) -> None:
        with patch("invoices.store._today_iso", return_value="2024-02-02"):
            invoice_id = _create(store, store.acme_id, cents=500, status="pending")

        result = store.update_invoice(
            invoice_id, InvoiceInput(customer_id=store.globex_id, amount_in_cents=750, status="paid")
        )
        assert result == WriteOk(rowcount=1, invoice_id=invoice_id)

        invoice = store.get_invoice(invoice_id)
        assert invoice.customer_id == store.globex_id
        assert invoice.amount == 750
        assert invoice.status == "paid"
        assert invoice.date == "2024-02-02"

    def test_update_missing_id_reports_zero_rows(self, store) -> None:
        result = store.update_invoice("missing", InvoiceInput(customer_id=store.acme_id, amount_in_cents=1, status="paid"))
        assert isinstance(result, WriteOk)
        assert result.rowcount == 0

    def test_update_to_unknown_customer_returns_write_failed(self, store) -> None:
        invoice_id = _create(store, store.acme_id)
        result = store.update_invoice(invoice_id, InvoiceInput(customer_id="nobody", amount_in_cents=1, status="paid"))
        assert isinstance(result, WriteFailed)
        assert result.operation == "update"
        assert result.integrity_error is True
        assert store.get_invoice(invoice_id).customer_id == store.acme_id

    def test_update_with_oversized_amount_returns_write_failed(self, store) -> None:
        invoice_id = _create(store, store.acme_id, cents=500)
        data = InvoiceInput(customer_id=store.acme_id, amount_in_cents=10**19, status="paid")
        result = store.update_invoice(invoice_id, data)
        assert isinstance(result, WriteFailed)
        assert store.get_invoice(invoice_id).amount == 500


class TestDeleteInvoice:
    def test_delete_removes_row(self, store) -> None:
        invoice_id = _create(store, store.acme_id)
        assert store.delete_invoice(invoice_id) == WriteOk(rowcount=1, invoice_id=invoice_id)
        assert store.get_invoice(invoice_id) is None

    def test_delete_missing_id_reports_zero_rows(self, store) -> None:
        result = store.delete_invoice("missing")
        assert isinstance(result, WriteOk)
        assert result.rowcount == 0


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestListInvoices:
    def test_search_matches_customer_status_and_amount(self, store) -> None:
        _create(store, store.acme_id, cents=1234, status="paid")
        _create(store, store.globex_id, cents=9999, status="pending")

        assert [i.customer_name for i in store.list_invoices(query="acme")] == ["Acme Corp"]
        assert [i.customer_name for i in store.list_invoices(query="GLOBEX.TEST")] == ["Globex"]
        assert [i.status for i in store.list_invoices(query="pending")] == ["pending"]
        assert [i.amount for i in store.list_invoices(query="1234")] == [1234]
        assert len(store.list_invoices()) == 2

    def test_newest_first(self, store) -> None:
        with patch("invoices.store._today_iso", return_value="2023-12-31"):
            old = _create(store, store.acme_id)
        with patch("invoices.store._today_iso", return_value="2024-06-30"):
            new = _create(store, store.acme_id)
        assert [i.id for i in store.list_invoices()] == [new, old]

    def test_pagination(self, store) -> None:
        for _ in range(PAGE_SIZE + 2):
            _create(store, store.acme_id)
        assert len(store.list_invoices(page=1)) == PAGE_SIZE
        assert len(store.list_invoices(page=2)) == 2
        assert store.list_invoices(page=3) == []
        assert store.count_invoice_pages() == 2
        assert store.count_invoice_pages(query="nothing matches this") == 0

    def test_page_below_one_treated_as_first(self, store) -> None:
        _create(store, store.acme_id)
        assert len(store.list_invoices(page=0)) == 1


class TestCustomers:
    def test_list_customers_ordered_by_name(self, store) -> None:
        store.create_customer(Customer(name="Aardvark Ltd", email="a@aardvark.test"))
        assert [c.name for c in store.list_customers()] == ["Aardvark Ltd", "Acme Corp", "Globex"]

    def test_ping(self, store) -> None:
        assert store.ping() is True
