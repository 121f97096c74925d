"""
Routes paiement / Payment routes.
Commande Razorpay et verification de signature ; la facture passe a payee.
Razorpay order and signature verification; the invoice is marked paid.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.deps import get_current_user, require_staff
from routezy.api.shipments import get_visible_shipment
from routezy.database import get_db
from routezy.models.invoice import Invoice
from routezy.models.user import User
from routezy.schemas.payment import InvoiceRead, OrderCreate, OrderRead, PaymentVerified, PaymentVerify
from routezy.services.payment_gateway import PaymentError, RazorpayClient, get_payment_client

logger = logging.getLogger(__name__)

router = APIRouter()


async def _shipment_invoice(db: AsyncSession, shipment_id: int) -> Invoice | None:
    result = await db.execute(
        select(Invoice).where(Invoice.shipment_id == shipment_id).order_by(Invoice.id.desc()).limit(1)
    )
    return result.scalar_one_or_none()


@router.post("/orders", response_model=OrderRead)
async def create_order(
    data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    client: RazorpayClient = Depends(get_payment_client),
):
    """Creer une commande Razorpay / Create a Razorpay order."""
    shipment = await get_visible_shipment(db, data.shipment_id, user)
    invoice = await _shipment_invoice(db, shipment.id)
    if invoice is not None and invoice.is_paid:
        raise HTTPException(status_code=409, detail="Invoice already paid")

    amount = data.amount
    if amount is None:
        amount = invoice.total_amount if invoice else shipment.final_cost or shipment.estimated_cost
    if not amount:
        raise HTTPException(status_code=400, detail="Nothing to pay for this shipment")

    try:
        order = await client.create_order(
            amount,
            receipt=shipment.tracking_id,
            notes={"shipment_id": str(shipment.id), "tracking_id": shipment.tracking_id},
        )
    except PaymentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return order


@router.post("/verify", response_model=PaymentVerified)
async def verify_payment(
    data: PaymentVerify,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    client: RazorpayClient = Depends(get_payment_client),
):
    """Verifier la signature et marquer la facture payee / Verify the signature and mark the invoice paid."""
    try:
        client.verify(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature)
    except PaymentError as exc:
        logger.warning("Payment %s rejected: %s", data.razorpay_payment_id, exc.message)
        raise HTTPException(status_code=exc.status_code, detail=exc.message)

    details = await client.fetch_payment(data.razorpay_payment_id) or {}

    if data.shipment_id is not None:
        shipment = await get_visible_shipment(db, data.shipment_id, user)
        invoice = await _shipment_invoice(db, shipment.id)
        if invoice is not None:
            invoice.is_paid = True
            invoice.paid_at = datetime.now(timezone.utc).replace(tzinfo=None)
            invoice.payment_reference = data.razorpay_payment_id
            await db.flush()

    logger.info("Payment verified: %s", data.razorpay_payment_id)
    return PaymentVerified(
        payment_id=data.razorpay_payment_id,
        amount=details["amount"] / 100 if details.get("amount") is not None else None,
        method=details.get("method"),
        status=details.get("status"),
    )


@router.get("/invoices", response_model=list[InvoiceRead])
async def list_invoices(
    is_paid: bool | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Factures, plus recentes d'abord / Invoices, newest first."""
    query = select(Invoice).order_by(Invoice.id.desc())
    if is_paid is not None:
        query = query.where(Invoice.is_paid.is_(is_paid))
    result = await db.execute(query)
    return result.scalars().all()
