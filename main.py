#!/usr/bin/env python3
"""
InvoiceDesk admin CLI -- seed users and customers, inspect invoices.

The web app never creates users; this is how accounts come to exist.

Usage:
  python main.py create-user --name "Ada Admin" --email ada@example.com
  python main.py create-user --name "Ada Admin" --email ada@example.com --password secret1
  python main.py create-customer --name "Acme Corp" --email billing@acme.test
  python main.py list-invoices
  python main.py list-invoices --query paid --page 2
  python main.py --db-url postgresql://user:pw@host/db list-invoices

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the application database (see core/config.py).
  SECRET_KEY    Required unless DEBUG=true.
"""

import argparse
import getpass
import re
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.service import EMAIL_PATTERN
from auth.store import UserStore
from auth.tokens import PASSWORD_MAX_BYTES, hash_password, password_too_long
from core.config import get_settings
from invoices.models import Customer
from invoices.store import InvoiceStore

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def _create_user(args: argparse.Namespace) -> int:
    settings = get_settings()
    if not _EMAIL_RE.match(args.email):
        print(f"  [!] '{args.email}' is not a valid email address.")
        return 1
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    if len(password) < settings.password_min_length:
        print(f"  [!] Password must be at least {settings.password_min_length} characters.")
        return 1
    if password_too_long(password):
        print(f"  [!] Password must be at most {PASSWORD_MAX_BYTES} bytes.")
        return 1

    store = UserStore(args.db_url)
    try:
        user_id = store.create_user(User(name=args.name, email=args.email, hashed_password=hash_password(password)))
    except IntegrityError:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created user {args.email} ({user_id})")
    return 0


def _create_customer(args: argparse.Namespace) -> int:
    store = InvoiceStore(args.db_url)
    try:
        customer_id = store.create_customer(Customer(name=args.name, email=args.email))
    finally:
        store.close()
    print(f"  Created customer {args.name} ({customer_id})")
    return 0


def _list_invoices(args: argparse.Namespace) -> int:
    store = InvoiceStore(args.db_url)
    try:
        invoices = store.list_invoices(query=args.query, page=args.page)
        pages = store.count_invoice_pages(query=args.query)
    finally:
        store.close()

    if not invoices:
        print("  No invoices found.")
        return 0
    for inv in invoices:
        customer = inv.customer_name or inv.customer_id
        print(f"  {inv.id}  {inv.date}  {inv.status:<8}  {inv.amount_display:>12}  {customer}")
    print(f"  Page {max(args.page, 1)} of {pages}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invoicedesk",
        description="InvoiceDesk administration.",
    )
    parser.add_argument("--db-url", default=None, help="SQLAlchemy database URL (default: DATABASE_URL setting)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_user = sub.add_parser("create-user", help="Create a dashboard login")
    p_user.add_argument("--name", required=True)
    p_user.add_argument("--email", required=True)
    p_user.add_argument("--password", default=None, help="Prompted for when omitted")
    p_user.set_defaults(func=_create_user)

    p_customer = sub.add_parser("create-customer", help="Create a customer invoices can be billed to")
    p_customer.add_argument("--name", required=True)
    p_customer.add_argument("--email", required=True)
    p_customer.set_defaults(func=_create_customer)

    p_list = sub.add_parser("list-invoices", help="Print invoices, newest first")
    p_list.add_argument("--query", default="", help="Filter by customer, status, date or amount")
    p_list.add_argument("--page", type=int, default=1)
    p_list.set_defaults(func=_list_invoices)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
