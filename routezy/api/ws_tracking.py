"""WebSocket temps reel pour suivi des expeditions / Real-time WebSocket for shipment tracking."""

import asyncio
import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from routezy.api.deps import get_user_from_token, is_staff
from routezy.database import async_session
from routezy.models.shipment import Shipment
from routezy.models.user import User
from routezy.services.change_feed import Change, Subscription, hub

logger = logging.getLogger(__name__)

router = APIRouter()

OTP_FIELDS = ("pickup_otp", "delivery_otp")


def _rows(change: Change) -> list[dict]:
    return [row for row in (change.new, change.old) if row]


def shipment_predicate(user: User):
    """Filtre des changements visibles par l'utilisateur / Filter for changes the user may see."""
    if is_staff(user):
        return None

    def _visible(change: Change) -> bool:
        return any(user.id in (row.get("sender_id"), row.get("driver_id")) for row in _rows(change))

    return _visible


def redact(change: Change, user: User) -> dict:
    """Masquer les OTP hors expediteur et managers / Hide OTPs from anyone but sender and staff."""
    payload = change.to_dict()
    if is_staff(user):
        return payload
    for key in ("new", "old"):
        row = payload[key]
        if row and row.get("sender_id") != user.id:
            payload[key] = {k: v for k, v in row.items() if k not in OTP_FIELDS}
    return payload


class TrackingConnectionManager:
    """Gestionnaire de connexions WebSocket / WebSocket connection manager."""

    def __init__(self):
        self.active_connections: list[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def send_personal(self, websocket: WebSocket, message: dict):
        await websocket.send_text(json.dumps(message, ensure_ascii=False))

    async def serve(self, websocket: WebSocket, subscription: Subscription, user: User):
        """Relayer l'abonnement jusqu'a la deconnexion / Relay the subscription until disconnect."""
        await self.connect(websocket)

        async def pump():
            async for change in subscription:
                await self.send_personal(websocket, redact(change, user))

        sender = asyncio.create_task(pump())
        try:
            while True:
                # Garder la connexion ouverte, recevoir pings / Keep connection alive
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Tracking sender failed for user %s", user.id)
            subscription.close()
            self.disconnect(websocket)


# Singleton global / Global singleton
manager = TrackingConnectionManager()


class SubscriberRejected(Exception):
    """Connexion refusee avec un code de fermeture / Connection refused with a close code."""

    def __init__(self, code: int, reason: str):
        super().__init__(reason)
        self.code = code
        self.reason = reason


async def authorize_subscriber(token: str, shipment_id: int | None = None) -> User:
    """Authentifier puis verifier la visibilite / Authenticate, then check visibility.

    Session courte, rendue au pool avant l'ouverture du flux.
    Short-lived session, returned to the pool before the stream starts.
    """
    async with async_session() as db:
        user = await get_user_from_token(db, token)
        if user is None:
            raise SubscriberRejected(4001, "Invalid token")
        staff = is_staff(user)

        if shipment_id is not None:
            shipment = await db.get(Shipment, shipment_id)
            if shipment is None or not (staff or user.id in (shipment.sender_id, shipment.driver_id)):
                raise SubscriberRejected(4004, "Shipment not found")
    return user


@router.websocket("/ws/shipments")
async def websocket_shipments(websocket: WebSocket, token: str = Query(default="")):
    """Tous les changements visibles / Every change visible to the user.

    Messages : {"table", "event": INSERT|UPDATE|DELETE, "new", "old"}
    """
    # Authentification JWT / JWT authentication
    try:
        user = await authorize_subscriber(token)
    except SubscriberRejected as exc:
        await websocket.close(code=exc.code, reason=exc.reason)
        return

    subscription = hub.subscribe("shipments", predicate=shipment_predicate(user))
    await manager.serve(websocket, subscription, user)


@router.websocket("/ws/shipments/{shipment_id}")
async def websocket_shipment(websocket: WebSocket, shipment_id: int, token: str = Query(default="")):
    """Suivi d'une seule expedition / Single shipment tracking."""
    try:
        user = await authorize_subscriber(token, shipment_id)
    except SubscriberRejected as exc:
        await websocket.close(code=exc.code, reason=exc.reason)
        return

    subscription = hub.subscribe("shipments", row_id=shipment_id)
    await manager.serve(websocket, subscription, user)
