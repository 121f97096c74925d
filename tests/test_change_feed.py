"""Tests flux temps reel / Realtime change feed tests."""

import asyncio
import logging

import pytest
from fastapi import WebSocketDisconnect
from sqlalchemy import text

from routezy.api import ws_tracking
from routezy.api.ws_tracking import (
    SubscriberRejected,
    TrackingConnectionManager,
    authorize_subscriber,
    redact,
    shipment_predicate,
)
from routezy.models.shipment import Shipment, ShipmentStatus
from routezy.models.user import AppRole, User, UserRole
from routezy.services.change_feed import (
    Change,
    ChangeEvent,
    ChangeFeedHub,
    ShipmentTracker,
    Subscription,
)
from routezy.utils.auth import create_access_token


def make_user(user_id: int, *roles: AppRole) -> User:
    user = User(id=user_id, email=f"u{user_id}@routezy.app", is_superadmin=False)
    user.roles = [UserRole(role=r) for r in roles]
    return user


def shipment_change(event=ChangeEvent.UPDATE, **row) -> Change:
    data = {"id": 1, "sender_id": 10, "driver_id": 20, "status": "PENDING",
            "pickup_otp": "1234", "delivery_otp": "5678"}
    data.update(row)
    return Change(table="shipments", event=event, new=data)


# ─── Hub ───

async def test_publish_filters_by_table_and_row():
    feed = ChangeFeedHub()
    all_rows = feed.subscribe("shipments")
    one_row = feed.subscribe("shipments", row_id=2)
    vehicles = feed.subscribe("fleet_vehicles")

    assert feed.publish(shipment_change(id=1)) == 1
    assert feed.publish(shipment_change(id=2)) == 2

    assert (await all_rows.get()).row_id == 1
    assert (await all_rows.get()).row_id == 2
    assert (await one_row.get()).row_id == 2
    assert vehicles.queue.empty()


async def test_predicate_filters_changes():
    feed = ChangeFeedHub()
    sub = feed.subscribe("shipments", predicate=lambda c: c.new["status"] == "DELIVERED")
    feed.publish(shipment_change(status="IN_TRANSIT"))
    feed.publish(shipment_change(status="DELIVERED"))
    assert sub.queue.qsize() == 1


async def test_delete_uses_old_row_id():
    change = Change(table="shipments", event=ChangeEvent.DELETE, old={"id": 9})
    assert change.row_id == 9
    assert change.to_dict() == {"table": "shipments", "event": "DELETE", "new": None, "old": {"id": 9}}


async def test_unsubscribe_stops_delivery():
    feed = ChangeFeedHub()
    sub = feed.subscribe("shipments")
    assert feed.subscriber_count == 1
    sub.close()
    assert feed.subscriber_count == 0
    assert feed.publish(shipment_change()) == 0
    # Double fermeture sans effet / Closing twice is harmless
    sub.close()


async def test_full_queue_drops_oldest():
    feed = ChangeFeedHub()
    sub = Subscription(hub=feed, table="shipments", queue=asyncio.Queue(2))
    for row_id in (1, 2, 3):
        sub.offer(shipment_change(id=row_id))
    assert sub.dropped == 1
    assert [(await sub.get()).row_id for _ in range(2)] == [2, 3]


async def test_subscription_is_async_iterable():
    feed = ChangeFeedHub()
    sub = feed.subscribe("shipments")
    feed.publish(shipment_change(id=4))
    received = await asyncio.wait_for(sub.__anext__(), timeout=1)
    assert received.row_id == 4


# ─── Suivi local / Local tracker ───

def test_tracker_insert_update_delete():
    tracker = ShipmentTracker([{"id": 1, "status": "PENDING"}])
    tracker.apply(shipment_change(ChangeEvent.INSERT, id=2))
    assert [s["id"] for s in tracker.shipments] == [2, 1]

    tracker.apply(Change("shipments", ChangeEvent.UPDATE, new={"id": 1, "status": "PICKUP_READY"}))
    assert tracker.shipments[1]["status"] == "PICKUP_READY"

    tracker.apply(Change("shipments", ChangeEvent.DELETE, old={"id": 2}))
    assert [s["id"] for s in tracker.shipments] == [1]


def test_tracker_callbacks():
    moves, statuses = [], []
    tracker = ShipmentTracker(
        [{"id": 1, "status": "IN_TRANSIT", "driver_lat": None, "driver_lng": None}],
        on_location_change=moves.append,
        on_status_change=lambda row, previous: statuses.append((row["status"], previous)),
    )
    tracker.apply(Change("shipments", ChangeEvent.UPDATE,
                         new={"id": 1, "status": "IN_TRANSIT", "driver_lat": 12.9, "driver_lng": 77.6}))
    assert len(moves) == 1
    assert statuses == []

    # Meme position -> pas de rappel / Same position -> no callback
    tracker.apply(Change("shipments", ChangeEvent.UPDATE,
                         new={"id": 1, "status": "DELIVERED", "driver_lat": 12.9, "driver_lng": 77.6}))
    assert len(moves) == 1
    assert statuses == [("DELIVERED", "IN_TRANSIT")]


async def test_tracker_follow_closes_subscription():
    feed = ChangeFeedHub()
    sub = feed.subscribe("shipments")
    tracker = ShipmentTracker()
    task = asyncio.create_task(tracker.follow(sub))
    feed.publish(shipment_change(ChangeEvent.INSERT, id=3))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert [s["id"] for s in tracker.shipments] == [3]
    assert feed.subscriber_count == 0


# ─── Visibilite WebSocket / WebSocket visibility ───

def test_staff_sees_everything():
    manager = make_user(1, AppRole.MANAGER)
    assert shipment_predicate(manager) is None
    payload = redact(shipment_change(), manager)
    assert payload["new"]["pickup_otp"] == "1234"


def test_predicate_matches_sender_or_driver():
    assert shipment_predicate(make_user(10, AppRole.SENDER))(shipment_change())
    assert shipment_predicate(make_user(20, AppRole.DRIVER))(shipment_change())
    assert not shipment_predicate(make_user(30, AppRole.SENDER))(shipment_change())


def test_predicate_sees_reassigned_driver_in_old_row():
    change = Change("shipments", ChangeEvent.UPDATE,
                    new={"id": 1, "sender_id": 10, "driver_id": 21},
                    old={"id": 1, "sender_id": 10, "driver_id": 20})
    assert shipment_predicate(make_user(20, AppRole.DRIVER))(change)


def test_redact_hides_otps_from_driver():
    payload = redact(shipment_change(), make_user(20, AppRole.DRIVER))
    assert "pickup_otp" not in payload["new"]
    assert "delivery_otp" not in payload["new"]
    assert payload["new"]["status"] == "PENDING"

    sender_payload = redact(shipment_change(), make_user(10, AppRole.SENDER))
    assert sender_payload["new"]["delivery_otp"] == "5678"


# ─── Diffusion transactionnelle / Transactional publishing ───

def pending_shipment(row_id: int = 5) -> Shipment:
    return Shipment(id=row_id, tracking_id="RTZ-260101-AAAAAA", status=ShipmentStatus.PENDING)


async def test_change_is_published_on_commit(session_factory):
    feed = ChangeFeedHub()
    sub = feed.subscribe("shipments")
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
        feed.publish_on_commit(session, "shipments", ChangeEvent.INSERT, new=pending_shipment())
        assert sub.queue.empty()
        await session.commit()

    change = sub.queue.get_nowait()
    assert change.row_id == 5
    assert change.new["status"] == "PENDING"


async def test_rolled_back_change_is_never_published(session_factory):
    feed = ChangeFeedHub()
    sub = feed.subscribe("shipments")
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
        feed.publish_on_commit(session, "shipments", ChangeEvent.UPDATE, new=pending_shipment())
        await session.rollback()

        await session.execute(text("SELECT 1"))
        await session.commit()
    assert sub.queue.empty()


async def test_savepoint_release_waits_for_root_commit(session_factory):
    feed = ChangeFeedHub()
    sub = feed.subscribe("shipments")
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
        async with session.begin_nested():
            feed.publish_on_commit(session, "shipments", ChangeEvent.UPDATE, new=pending_shipment())
        assert sub.queue.empty()
        await session.commit()
    assert sub.queue.qsize() == 1


# ─── Connexions WebSocket / WebSocket connections ───

class FailingSocket:
    """Socket dont l'envoi echoue puis qui se deconnecte / Socket whose send fails, then disconnects."""

    def __init__(self):
        self.gone = asyncio.Event()

    async def accept(self):
        pass

    async def send_text(self, text):
        self.gone.set()
        raise RuntimeError("socket closed")

    async def receive_text(self):
        await self.gone.wait()
        raise WebSocketDisconnect(code=1006)


async def test_sender_failure_is_logged_and_cleaned_up(caplog):
    feed = ChangeFeedHub()
    sub = feed.subscribe("shipments")
    sub.offer(shipment_change())
    connections = TrackingConnectionManager()
    socket = FailingSocket()

    with caplog.at_level(logging.ERROR, logger="routezy.api.ws_tracking"):
        await asyncio.wait_for(connections.serve(socket, sub, make_user(1, AppRole.MANAGER)), timeout=1)

    assert "Tracking sender failed" in caplog.text
    assert feed.subscriber_count == 0
    assert connections.active_connections == []


@pytest.fixture
async def ws_sessions(session_factory, monkeypatch):
    monkeypatch.setattr(ws_tracking, "async_session", session_factory)
    return session_factory


async def add_shipment(session_factory, sender_id: int) -> int:
    async with session_factory() as session:
        shipment = Shipment(
            tracking_id="RTZ-260101-BBBBBB", sender_id=sender_id, pickup_address="A",
            delivery_address="B", pickup_otp="1234", delivery_otp="5678",
        )
        session.add(shipment)
        await session.commit()
        return shipment.id


async def test_authorize_rejects_bad_token(ws_sessions):
    with pytest.raises(SubscriberRejected) as exc:
        await authorize_subscriber("not-a-token")
    assert exc.value.code == 4001


async def test_authorize_checks_shipment_visibility(ws_sessions, sender, manager, driver):
    shipment_id = await add_shipment(ws_sessions, sender.id)

    user = await authorize_subscriber(create_access_token(sender.id), shipment_id)
    assert user.id == sender.id
    assert (await authorize_subscriber(create_access_token(manager.id), shipment_id)).id == manager.id

    with pytest.raises(SubscriberRejected) as exc:
        await authorize_subscriber(create_access_token(driver.id), shipment_id)
    assert exc.value.code == 4004
    with pytest.raises(SubscriberRejected):
        await authorize_subscriber(create_access_token(sender.id), shipment_id + 100)
