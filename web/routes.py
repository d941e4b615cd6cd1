"""
web/routes.py -- Jinja2 template routes for the InvoiceDesk web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same stores, auth service, invoice actions) but return HTML instead
of JSON.

Routes:
  GET  /                                      -- redirect to the invoice list
  GET  /dashboard                             -- redirect to the invoice list
  GET  /dashboard/invoices                    -- invoice list (auth required, cached)
  GET  /dashboard/invoices/create             -- creation form (auth required)
  POST /dashboard/invoices                    -- create, 303 to the list
  GET  /dashboard/invoices/{invoice_id}/edit  -- edit form (auth required)
  POST /dashboard/invoices/{invoice_id}       -- update, 303 to the list
  POST /dashboard/invoices/{invoice_id}/delete -- delete, 303 to the list
  GET  /login                                 -- login form
  POST /login                                 -- handle password login
  POST /logout                                -- clear cookie, redirect /login

Form submissions are handed to InvoiceActions unchanged. A Redirect outcome
becomes a 303; an ActionState re-renders the form with its messages:
  validation_error -> 422, database_error -> 503, not_found -> 404.

Pages are rendered with templates.TemplateResponse. The invoice list is the
exception: it renders to a string so the HTML can be stored in the view cache.
"""

import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import try_get_current_user
from auth.service import AuthService
from auth.tokens import COOKIE_NAME, create_access_token, set_auth_cookie
from cache.store import ViewCache
from invoices.actions import InvoiceActions
from invoices.models import INVOICE_STATUSES, INVOICES_PATH, ActionState, Invoice
from invoices.store import InvoiceStore

logger = logging.getLogger("invoicedesk.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_STATUS_FOR_CODE: dict[str, int] = {
    "validation_error": 422,
    "not_found": 404,
    "database_error": 503,
}

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params on /login.
# The raw query param is NEVER passed to templates -- only the message from
# this dict is. Prevents reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid email or password.",
}


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    /login?next=https://attacker.com and /login?next=//attacker.com would both
    send the user off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return INVOICES_PATH


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to /login if the request is not authenticated, else None.

    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_current_user(request) is None:
        return RedirectResponse(f"/login?next={request.url.path}", status_code=302)
    return None


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _render_html(name: str, context: dict[str, Any]) -> str:
    """Render to a string, for pages whose HTML goes into the view cache."""
    return templates.get_template(name).render(context)


def _form_data(customer_id: Optional[str], amount: Optional[str], status: Optional[str]) -> dict[str, str]:
    return {"customer_id": customer_id or "", "amount": amount or "", "status": status or ""}


def _invoice_form_data(invoice: Invoice) -> dict[str, str]:
    return {
        "customer_id": invoice.customer_id,
        "amount": f"{invoice.amount / 100:.2f}",
        "status": invoice.status,
    }


def _form_context(
    request: Request,
    form_data: dict[str, str],
    state: Optional[ActionState] = None,
    invoice: Optional[Invoice] = None,
) -> dict[str, Any]:
    store: InvoiceStore = request.app.state.invoice_store
    return {
        "invoice": invoice,
        "form_data": form_data,
        "state": state or ActionState(),
        "customers": store.list_customers(),
        "statuses": INVOICE_STATUSES,
    }


# ---------------------------------------------------------------------------
# Redirects
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index() -> RedirectResponse:
    return RedirectResponse(INVOICES_PATH, status_code=302)


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard() -> RedirectResponse:
    return RedirectResponse(INVOICES_PATH, status_code=302)


# ---------------------------------------------------------------------------
# GET /dashboard/invoices -- cached invoice list
# ---------------------------------------------------------------------------


@router.get(INVOICES_PATH, response_class=HTMLResponse)
def invoice_list(request: Request, query: str = "", page: int = 1) -> HTMLResponse:
    """Render the invoice list, serving it from the view cache when fresh.

    The cache is keyed by the raw query string, so every search/page
    combination is cached separately and all of them are dropped together
    when an action revalidates INVOICES_PATH.
    """
    if redirect := _require_auth(request):
        return redirect

    view_cache: ViewCache = request.app.state.view_cache
    variant = request.url.query
    html = view_cache.get(INVOICES_PATH, variant)
    if html is not None:
        return HTMLResponse(html)

    store: InvoiceStore = request.app.state.invoice_store
    page = max(page, 1)
    html = _render_html(
        "invoices.html",
        {
            "invoices": store.list_invoices(query=query, page=page),
            "total_pages": store.count_invoice_pages(query=query),
            "page": page,
            "query": query,
        },
    )
    view_cache.set(INVOICES_PATH, variant, html)
    return HTMLResponse(html)


# ---------------------------------------------------------------------------
# GET /dashboard/invoices/create -- creation form
# ---------------------------------------------------------------------------


@router.get(f"{INVOICES_PATH}/create", response_class=HTMLResponse)
def invoice_create_form(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    context = _form_context(request, _form_data(None, None, None))
    return templates.TemplateResponse(request, "invoice_form.html", context)


# ---------------------------------------------------------------------------
# POST /dashboard/invoices -- create
# ---------------------------------------------------------------------------


@router.post(INVOICES_PATH, response_class=HTMLResponse)
def invoice_create(
    request: Request,
    customer_id: Optional[str] = Form(default=None),
    amount: Optional[str] = Form(default=None),
    status: Optional[str] = Form(default=None),
) -> HTMLResponse:
    """Handle the creation form. Redirects to the list on success."""
    if redirect := _require_auth(request):
        return redirect

    actions: InvoiceActions = request.app.state.invoice_actions
    outcome = actions.create({"customer_id": customer_id, "amount": amount, "status": status})
    if isinstance(outcome, ActionState):
        return templates.TemplateResponse(
            request,
            "invoice_form.html",
            _form_context(request, _form_data(customer_id, amount, status), state=outcome),
            status_code=_STATUS_FOR_CODE.get(outcome.code, 400),
        )
    return RedirectResponse(outcome.location, status_code=303)


# ---------------------------------------------------------------------------
# GET /dashboard/invoices/{invoice_id}/edit -- edit form
# ---------------------------------------------------------------------------


@router.get(INVOICES_PATH + "/{invoice_id}/edit", response_class=HTMLResponse)
def invoice_edit_form(request: Request, invoice_id: str) -> HTMLResponse:
    """Render the edit form, pre-populated with current values."""
    if redirect := _require_auth(request):
        return redirect
    store: InvoiceStore = request.app.state.invoice_store
    invoice = store.get_invoice(invoice_id)
    if invoice is None:
        return HTMLResponse("<h1>Invoice not found</h1>", status_code=404)
    return templates.TemplateResponse(
        request, "invoice_form.html", _form_context(request, _invoice_form_data(invoice), invoice=invoice)
    )


# ---------------------------------------------------------------------------
# POST /dashboard/invoices/{invoice_id} -- update
# ---------------------------------------------------------------------------


@router.post(INVOICES_PATH + "/{invoice_id}", response_class=HTMLResponse)
def invoice_update(
    request: Request,
    invoice_id: str,
    customer_id: Optional[str] = Form(default=None),
    amount: Optional[str] = Form(default=None),
    status: Optional[str] = Form(default=None),
) -> HTMLResponse:
    """Handle the edit form. Redirects to the list on success."""
    if redirect := _require_auth(request):
        return redirect

    actions: InvoiceActions = request.app.state.invoice_actions
    outcome = actions.update(invoice_id, {"customer_id": customer_id, "amount": amount, "status": status})
    if isinstance(outcome, ActionState):
        if outcome.code == "not_found":
            return HTMLResponse("<h1>Invoice not found</h1>", status_code=404)
        invoice = request.app.state.invoice_store.get_invoice(invoice_id)
        return templates.TemplateResponse(
            request,
            "invoice_form.html",
            _form_context(request, _form_data(customer_id, amount, status), state=outcome, invoice=invoice),
            status_code=_STATUS_FOR_CODE.get(outcome.code, 400),
        )
    return RedirectResponse(outcome.location, status_code=303)


# ---------------------------------------------------------------------------
# POST /dashboard/invoices/{invoice_id}/delete -- delete
# ---------------------------------------------------------------------------


@router.post(INVOICES_PATH + "/{invoice_id}/delete", response_class=HTMLResponse)
def invoice_delete(request: Request, invoice_id: str) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect

    actions: InvoiceActions = request.app.state.invoice_actions
    state = actions.delete(invoice_id)
    if state.code == "not_found":
        return HTMLResponse("<h1>Invoice not found</h1>", status_code=404)
    if not state.ok:
        return templates.TemplateResponse(request, "error.html", {"message": state.message}, status_code=503)
    return RedirectResponse(INVOICES_PATH, status_code=303)


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page."""
    if try_get_current_user(request) is not None:
        return RedirectResponse(INVOICES_PATH, status_code=302)

    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""), None)
    next_url = _safe_next(request.query_params.get("next"))
    return templates.TemplateResponse(request, "login.html", {"error_msg": error_msg, "next_url": next_url})


@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
) -> RedirectResponse:
    """Handle the email/password login form.

    AuthLookupError from authorize() is not caught here; the app-level
    exception handler turns it into a 500.
    """
    auth_service: AuthService = request.app.state.auth_service
    user = auth_service.authorize({"email": email, "password": password})
    next_url = _safe_next(request.query_params.get("next"))
    if user is None:
        return RedirectResponse(f"/login?error=bad_credentials&next={quote(next_url)}", status_code=302)

    logger.info("User %s logged in", user.id)
    token = create_access_token(user.id, user.email)
    resp = RedirectResponse(next_url, status_code=302)
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Clear the JWT cookie and redirect to the login page."""
    resp = RedirectResponse("/login", status_code=302)
    resp.delete_cookie(COOKIE_NAME)
    return resp
