"""
api/routes/v1/invoices.py -- Invoice and customer routes for the InvoiceDesk REST API.

Routes:
  GET    /invoices                -- filtered, paginated list (?query=&page=)
  POST   /invoices                -- create; 201 + Location
  GET    /invoices/{invoice_id}   -- detail
  PUT    /invoices/{invoice_id}   -- update customer/amount/status
  DELETE /invoices/{invoice_id}   -- delete; 204
  GET    /customers               -- customers for invoice forms

Writes go through the same InvoiceActions the web forms use, so validation
messages, invalidation and failure handling are identical on both surfaces.
ActionState codes map to HTTP statuses:
  validation_error -> 422 (error.fields carries the per-field messages)
  not_found        -> 404
  database_error   -> 503
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from api.limiter import limiter
from api.models import (
    CustomerResponse,
    ErrorDetail,
    ErrorResponse,
    InvoiceFields,
    InvoiceListResponse,
    InvoiceResponse,
)
from auth.dependencies import get_current_user
from invoices.actions import InvoiceActions
from invoices.models import ActionState
from invoices.store import InvoiceStore

# All invoice and customer routes require authentication.
router = APIRouter(dependencies=[Depends(get_current_user)])

_STATUS_FOR_CODE: dict[str, int] = {
    "validation_error": 422,
    "not_found": 404,
    "database_error": 503,
}


def _state_response(state: ActionState) -> JSONResponse:
    """Turn a failed ActionState into the standard error envelope."""
    return JSONResponse(
        status_code=_STATUS_FOR_CODE.get(state.code, 400),
        content=ErrorResponse(
            error=ErrorDetail(
                code=state.code,
                message=state.message or "Request failed.",
                fields=state.errors or None,
            )
        ).model_dump(),
    )


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=ErrorDetail(code="not_found", message="Invoice not found.").model_dump(),
    )


# ---------------------------------------------------------------------------
# GET /invoices
# ---------------------------------------------------------------------------


@limiter.limit("60/minute")
@router.get("/invoices", response_model=InvoiceListResponse)
def list_invoices(request: Request, query: str = "", page: int = 1) -> InvoiceListResponse:
    store: InvoiceStore = request.app.state.invoice_store
    page = max(page, 1)
    invoices = store.list_invoices(query=query, page=page)
    return InvoiceListResponse(
        invoices=[InvoiceResponse.from_invoice(i) for i in invoices],
        page=page,
        total_pages=store.count_invoice_pages(query=query),
        query=query,
    )


# ---------------------------------------------------------------------------
# POST /invoices
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.post("/invoices", response_model=InvoiceResponse, status_code=201)
def create_invoice(request: Request, body: InvoiceFields) -> JSONResponse:
    """Create an invoice dated today. amount is in dollars."""
    actions: InvoiceActions = request.app.state.invoice_actions
    outcome = actions.create(body.model_dump())
    if isinstance(outcome, ActionState):
        return _state_response(outcome)

    store: InvoiceStore = request.app.state.invoice_store
    invoice = store.get_invoice(outcome.invoice_id)
    if invoice is None:
        raise _not_found()
    return JSONResponse(
        status_code=201,
        content=InvoiceResponse.from_invoice(invoice).model_dump(),
        headers={"Location": f"/api/v1/invoices/{invoice.id}"},
    )


# ---------------------------------------------------------------------------
# GET /invoices/{invoice_id}
# ---------------------------------------------------------------------------


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
def get_invoice(request: Request, invoice_id: str) -> InvoiceResponse:
    store: InvoiceStore = request.app.state.invoice_store
    invoice = store.get_invoice(invoice_id)
    if invoice is None:
        raise _not_found()
    return InvoiceResponse.from_invoice(invoice)


# ---------------------------------------------------------------------------
# PUT /invoices/{invoice_id}
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.put("/invoices/{invoice_id}", response_model=InvoiceResponse)
def update_invoice(request: Request, invoice_id: str, body: InvoiceFields) -> JSONResponse:
    actions: InvoiceActions = request.app.state.invoice_actions
    outcome = actions.update(invoice_id, body.model_dump())
    if isinstance(outcome, ActionState):
        return _state_response(outcome)

    invoice = request.app.state.invoice_store.get_invoice(invoice_id)
    if invoice is None:
        raise _not_found()
    return JSONResponse(status_code=200, content=InvoiceResponse.from_invoice(invoice).model_dump())


# ---------------------------------------------------------------------------
# DELETE /invoices/{invoice_id}
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.delete("/invoices/{invoice_id}", status_code=204)
def delete_invoice(request: Request, invoice_id: str) -> Response:
    actions: InvoiceActions = request.app.state.invoice_actions
    state = actions.delete(invoice_id)
    if not state.ok:
        return _state_response(state)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# GET /customers
# ---------------------------------------------------------------------------


@router.get("/customers", response_model=list[CustomerResponse])
def list_customers(request: Request) -> list[CustomerResponse]:
    store: InvoiceStore = request.app.state.invoice_store
    return [CustomerResponse.from_customer(c) for c in store.list_customers()]
