"""
API request and response models for InvoiceDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in invoices/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

Invoice request bodies are deliberately loose (every field optional, amount
may be a string or a number): the same field validators used by the web form
decide what is acceptable, so both surfaces report identical messages.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from invoices.models import Customer, Invoice

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload. fields is set on validation errors."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[dict[str, list[str]]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Body for POST /api/v1/auth/login. Format rules are enforced by AuthService."""

    email: str = Field(max_length=255)
    password: str = Field(max_length=255)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    email: str
    name: str


class MeResponse(BaseModel):
    user_id: str
    name: str
    email: str


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


class InvoiceFields(BaseModel):
    """Body for POST /invoices and PUT /invoices/{id}.

    amount is in dollars (e.g. "19.99" or 19.99); the response reports cents.
    """

    customer_id: Optional[str] = Field(default=None, max_length=36)
    amount: Optional[Union[str, float, int]] = None
    status: Optional[str] = Field(default=None, max_length=20)


class InvoiceResponse(BaseModel):
    id: str
    customer_id: str
    customer_name: Optional[str]
    amount: int  # cents
    amount_display: str
    status: str
    date: str

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(
            id=invoice.id,
            customer_id=invoice.customer_id,
            customer_name=invoice.customer_name,
            amount=invoice.amount,
            amount_display=invoice.amount_display,
            status=invoice.status,
            date=invoice.date,
        )


class InvoiceListResponse(BaseModel):
    invoices: list[InvoiceResponse]
    page: int
    total_pages: int
    query: str


class CustomerResponse(BaseModel):
    id: str
    name: str
    email: str

    @classmethod
    def from_customer(cls, customer: Customer) -> "CustomerResponse":
        return cls(id=customer.id or "", name=customer.name, email=customer.email)
