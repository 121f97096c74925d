"""
Passerelle de paiement Razorpay / Razorpay payment gateway.
Creation de commande et verification de signature.
Order creation and signature verification.
"""

import hashlib
import hmac
import logging

import httpx

from routezy.config import settings

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Echec de paiement a remonter a l'utilisateur / Payment failure surfaced to the user."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def sign(order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 hex de 'order_id|payment_id' / Hex HMAC-SHA256 of 'order_id|payment_id'."""
    return hmac.new(
        secret.encode("utf-8"),
        f"{order_id}|{payment_id}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    return hmac.compare_digest(sign(order_id, payment_id, secret), signature or "")


class RazorpayClient:
    """Client REST Razorpay / Razorpay REST client."""

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.base_url = (base_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.transport = transport

    def _ensure_configured(self) -> None:
        if not self.key_id or not self.key_secret:
            raise PaymentError("Razorpay credentials not configured", status_code=503)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=15.0,
            transport=self.transport,
        )

    async def create_order(
        self,
        amount: float,
        currency: str | None = None,
        receipt: str | None = None,
        notes: dict | None = None,
    ) -> dict:
        """Creer une commande ; montant converti en paise / Create an order; amount converted to paise."""
        self._ensure_configured()
        payload = {
            "amount": round(amount * 100),
            "currency": currency or settings.PAYMENT_CURRENCY,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            async with self._client() as client:
                response = await client.post("/orders", json=payload)
        except httpx.HTTPError as exc:
            logger.error("Razorpay order request failed: %s", exc)
            raise PaymentError("Failed to create Razorpay order") from exc

        if response.status_code >= 400:
            logger.error("Razorpay order creation failed: %s %s", response.status_code, response.text)
            raise PaymentError("Failed to create Razorpay order")

        order = response.json()
        return {
            "order_id": order["id"],
            "amount": order["amount"],
            "currency": order["currency"],
            "key_id": self.key_id,
        }

    def verify(self, order_id: str, payment_id: str, signature: str) -> None:
        """Lever PaymentError si la signature ne correspond pas / Raise PaymentError on signature mismatch."""
        self._ensure_configured()
        if not verify_signature(order_id, payment_id, signature, self.key_secret):
            raise PaymentError("Payment verification failed - signature mismatch", status_code=400)

    async def fetch_payment(self, payment_id: str) -> dict | None:
        """Details du paiement, None si indisponible / Payment details, None when unavailable."""
        try:
            async with self._client() as client:
                response = await client.get(f"/payments/{payment_id}")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Could not fetch Razorpay payment %s: %s", payment_id, exc)
            return None
        return response.json()


def get_payment_client() -> RazorpayClient:
    """Dependance FastAPI / FastAPI dependency."""
    return RazorpayClient()
