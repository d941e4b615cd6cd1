"""
invoices/store.py -- SQLAlchemy Core persistence layer for invoices and customers.

Pattern: Repository + Data Mapper. InvoiceStore is the repository; the
_row_to_* functions are the mappers. Route and action code never touches SQL.

Write methods (create/update/delete) each issue a single parameterized
statement and return a WriteResult instead of raising. Any SQLAlchemyError is
logged with its traceback and returned as WriteFailed, so callers always learn
whether the write happened. A constraint violation (unknown customer_id) comes
back flagged integrity_error. OverflowError is caught too: sqlite3 raises it
unwrapped for an integer wider than 64 bits. Read methods raise as usual.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = InvoiceStore()                               # SQLite default
    store = InvoiceStore("postgresql://user:pw@host/db") # PostgreSQL
    result = store.create_invoice(InvoiceInput("c-1", 1999, "pending"))
    store.update_invoice(invoice_id, data)
    store.delete_invoice(invoice_id)
    store.close()
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    cast,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.config import get_settings
from invoices.models import Customer, Invoice, InvoiceInput, WriteFailed, WriteOk, WriteResult

logger = logging.getLogger("invoicedesk.invoices")

PAGE_SIZE = 6

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_customers = Table(
    "customers",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
)

_invoices = Table(
    "invoices",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("customer_id", String(36), ForeignKey("customers.id"), nullable=False),
    Column("amount", Integer, nullable=False),  # cents
    Column("status", String(20), nullable=False),
    Column("date", String(10), nullable=False),  # YYYY-MM-DD
)


# ---------------------------------------------------------------------------
# SQLite pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign keys on every new SQLite connection.

    SQLite PRAGMAs are per-connection and are not inherited by new
    connections from the pool. Without foreign_keys=ON an invoice could
    reference a customer that does not exist.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _today_iso() -> str:
    """Current UTC calendar date as YYYY-MM-DD. Resolved per call."""
    return datetime.now(timezone.utc).date().isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class InvoiceStore:
    """Repository for Invoice and Customer entities."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Invoice writes
    # ------------------------------------------------------------------

    def create_invoice(self, data: InvoiceInput) -> WriteResult:
        """Insert a new invoice dated today. Returns WriteOk with the new id."""
        invoice_id = _new_id()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _invoices.insert().values(
                        id=invoice_id,
                        customer_id=data.customer_id,
                        amount=data.amount_in_cents,
                        status=data.status,
                        date=_today_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            logger.warning("Failed to Create Invoice: customer %s rejected (%s)", data.customer_id, exc.orig)
            return WriteFailed(operation="create", reason=str(exc), integrity_error=True)
        except (SQLAlchemyError, OverflowError) as exc:
            logger.exception("Database Error: Failed to Create Invoice.")
            return WriteFailed(operation="create", reason=str(exc))
        return WriteOk(rowcount=result.rowcount, invoice_id=invoice_id)

    def update_invoice(self, invoice_id: str, data: InvoiceInput) -> WriteResult:
        """Overwrite customer, amount and status. The date is left untouched.

        rowcount == 0 in the returned WriteOk means invoice_id does not exist.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _invoices.update()
                    .where(_invoices.c.id == invoice_id)
                    .values(
                        customer_id=data.customer_id,
                        amount=data.amount_in_cents,
                        status=data.status,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            logger.warning("Failed to Update Invoice %s: customer %s rejected (%s)", invoice_id, data.customer_id, exc.orig)
            return WriteFailed(operation="update", reason=str(exc), integrity_error=True)
        except (SQLAlchemyError, OverflowError) as exc:
            logger.exception("Database Error: Failed to Update Invoice.")
            return WriteFailed(operation="update", reason=str(exc))
        return WriteOk(rowcount=result.rowcount, invoice_id=invoice_id)

    def delete_invoice(self, invoice_id: str) -> WriteResult:
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_invoices.delete().where(_invoices.c.id == invoice_id))
                conn.commit()
        except SQLAlchemyError as exc:
            logger.exception("Database Error: Failed to Delete Invoice.")
            return WriteFailed(operation="delete", reason=str(exc))
        return WriteOk(rowcount=result.rowcount, invoice_id=invoice_id)

    # ------------------------------------------------------------------
    # Invoice reads
    # ------------------------------------------------------------------

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        """Look up one invoice with its customer. Returns None if not found."""
        stmt = _invoice_select().where(_invoices.c.id == invoice_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_invoice(row) if row is not None else None

    def list_invoices(self, query: str = "", page: int = 1) -> list[Invoice]:
        """Return one page of invoices matching query, newest first.

        query matches customer name or email, status, date, or the amount in
        cents as text. An empty query matches everything.
        """
        page = max(page, 1)
        stmt = (
            _filter(_invoice_select(), query)
            .order_by(_invoices.c.date.desc(), _customers.c.name)
            .limit(PAGE_SIZE)
            .offset((page - 1) * PAGE_SIZE)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_invoice(r) for r in rows]

    def count_invoice_pages(self, query: str = "") -> int:
        """Number of PAGE_SIZE pages needed for invoices matching query."""
        base = select(func.count()).select_from(
            _invoices.outerjoin(_customers, _invoices.c.customer_id == _customers.c.id)
        )
        with self.engine.connect() as conn:
            total = conn.execute(_filter(base, query)).scalar() or 0
        return math.ceil(total / PAGE_SIZE)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def create_customer(self, customer: Customer) -> str:
        """Insert a customer and return its id. Raises on database errors."""
        customer_id = customer.id or _new_id()
        with self.engine.connect() as conn:
            conn.execute(_customers.insert().values(id=customer_id, name=customer.name, email=customer.email))
            conn.commit()
        return customer_id

    def list_customers(self) -> list[Customer]:
        """Return all customers ordered by name, for the invoice form select."""
        with self.engine.connect() as conn:
            rows = conn.execute(_customers.select().order_by(_customers.c.name)).fetchall()
        return [Customer(id=r.id, name=r.name, email=r.email) for r in rows]

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Query builders
# ---------------------------------------------------------------------------


def _invoice_select():
    return select(
        _invoices,
        _customers.c.name.label("customer_name"),
        _customers.c.email.label("customer_email"),
    ).select_from(_invoices.outerjoin(_customers, _invoices.c.customer_id == _customers.c.id))


def _filter(stmt, query: str):
    query = (query or "").strip()
    if not query:
        return stmt
    pattern = f"%{query}%"
    return stmt.where(
        or_(
            _customers.c.name.ilike(pattern),
            _customers.c.email.ilike(pattern),
            _invoices.c.status.ilike(pattern),
            _invoices.c.date.ilike(pattern),
            cast(_invoices.c.amount, String).ilike(pattern),
        )
    )


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_invoice(row) -> Invoice:
    return Invoice(
        id=row.id,
        customer_id=row.customer_id,
        amount=row.amount,
        status=row.status,
        date=row.date,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
    )
