"""Schémas paiement / Payment schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class OrderCreate(BaseModel):
    shipment_id: int
    amount: float | None = Field(default=None, gt=0)  # total facture par défaut / invoice total by default


class OrderRead(BaseModel):
    order_id: str
    amount: int  # paise
    currency: str
    key_id: str


class PaymentVerify(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    shipment_id: int | None = None


class PaymentVerified(BaseModel):
    success: bool = True
    payment_id: str
    amount: float | None = None
    method: str | None = None
    status: str | None = None


class InvoiceRead(BaseModel):
    id: int
    invoice_number: str
    shipment_id: int
    sender_id: int | None = None
    amount: float
    tax_amount: float
    total_amount: float
    is_paid: bool
    paid_at: datetime | None = None
    payment_reference: str | None = None
    created_at: datetime | None = None
    model_config = {"from_attributes": True}
