"""
Flux de changements temps reel / Realtime change feed.

Hub publish/subscribe en memoire : un abonnement par consommateur, file bornee,
filtre par table et par ligne, desabonnement explicite.
In-memory publish/subscribe hub: one subscription per consumer, bounded queue,
filtered by table and row, explicit unsubscribe.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy.event import listens_for
from sqlalchemy.orm import Session

from routezy.config import settings

logger = logging.getLogger(__name__)


class ChangeEvent(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class Change:
    """Notification de changement d'une ligne / Row change notification."""
    table: str
    event: ChangeEvent
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    @property
    def row_id(self) -> Any:
        row = self.new if self.new is not None else self.old
        return row.get("id") if row else None

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "event": self.event.value,
            "new": self.new,
            "old": self.old,
        }


def row_to_dict(obj) -> dict[str, Any]:
    """Colonnes d'un modele en dict JSON / Model columns as a JSON-ready dict."""
    data = {}
    for col in obj.__table__.columns:
        value = getattr(obj, col.key, None)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        data[col.key] = value
    return data


@dataclass(eq=False)
class Subscription:
    """Abonnement d'un consommateur / A consumer's subscription."""
    hub: "ChangeFeedHub"
    table: str
    row_id: Any = None
    predicate: Callable[[Change], bool] | None = None
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(settings.REALTIME_QUEUE_SIZE))
    dropped: int = 0

    def matches(self, change: Change) -> bool:
        if change.table != self.table:
            return False
        if self.row_id is not None and change.row_id != self.row_id:
            return False
        if self.predicate is not None and not self.predicate(change):
            return False
        return True

    def offer(self, change: Change) -> None:
        """Deposer sans bloquer ; file pleine -> on jette la plus ancienne.
        Enqueue without blocking; when full the oldest notification is dropped.
        """
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(change)

    async def get(self) -> Change:
        return await self.queue.get()

    def __aiter__(self):
        return self

    async def __anext__(self) -> Change:
        return await self.queue.get()

    def close(self) -> None:
        self.hub.unsubscribe(self)


class ChangeFeedHub:
    """Hub de diffusion des changements / Change broadcast hub."""

    def __init__(self):
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        table: str,
        row_id: Any = None,
        predicate: Callable[[Change], bool] | None = None,
    ) -> Subscription:
        sub = Subscription(hub=self, table=table, row_id=row_id, predicate=predicate)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def publish(self, change: Change) -> int:
        """Diffuser a tous les abonnes concernes / Fan out to matching subscribers."""
        delivered = 0
        for sub in list(self._subscriptions):
            if sub.matches(change):
                sub.offer(change)
                delivered += 1
        logger.debug("Published %s %s:%s to %d subscribers",
                     change.event.value, change.table, change.row_id, delivered)
        return delivered

    def publish_on_commit(self, db, table: str, event: ChangeEvent, new=None, old: dict | None = None) -> None:
        """Diffuser apres le commit de la session / Publish once the session commits.

        Rien n'est diffuse si la transaction est annulee.
        Nothing is published when the transaction rolls back.
        """
        change = Change(
            table=table,
            event=event,
            new=row_to_dict(new) if new is not None else None,
            old=old,
        )
        db.info.setdefault(PENDING_CHANGES_KEY, []).append((self, change))


# ─── Diffusion transactionnelle / Transactional publishing ───

PENDING_CHANGES_KEY = "routezy.pending_changes"


@listens_for(Session, "after_commit")
def _publish_pending_changes(session: Session) -> None:
    # Liberation d'un savepoint : on attend le commit racine / Savepoint release: wait for the root commit
    if session.in_nested_transaction():
        return
    for feed, change in session.info.pop(PENDING_CHANGES_KEY, []):
        feed.publish(change)


@listens_for(Session, "after_soft_rollback")
def _discard_pending_changes(session: Session, previous_transaction) -> None:
    if previous_transaction.parent is None:
        session.info.pop(PENDING_CHANGES_KEY, None)


# Singleton global / Global singleton
hub = ChangeFeedHub()


class ShipmentTracker:
    """Etat local des expeditions suivies / Local state of tracked shipments.

    INSERT ajoute en tete, UPDATE remplace, DELETE retire.
    INSERT prepends, UPDATE replaces, DELETE removes.
    """

    def __init__(
        self,
        shipments: list[dict] | None = None,
        on_location_change: Callable[[dict], None] | None = None,
        on_status_change: Callable[[dict, str | None], None] | None = None,
    ):
        self.shipments: list[dict] = list(shipments or [])
        self.on_location_change = on_location_change
        self.on_status_change = on_status_change

    def _index(self, row_id) -> int | None:
        for idx, s in enumerate(self.shipments):
            if s.get("id") == row_id:
                return idx
        return None

    def apply(self, change: Change) -> None:
        if change.event == ChangeEvent.INSERT and change.new is not None:
            self.shipments.insert(0, change.new)
        elif change.event == ChangeEvent.UPDATE and change.new is not None:
            idx = self._index(change.row_id)
            previous = self.shipments[idx] if idx is not None else (change.old or {})
            if idx is not None:
                self.shipments[idx] = change.new
            self._fire_callbacks(previous, change.new)
        elif change.event == ChangeEvent.DELETE:
            idx = self._index(change.row_id)
            if idx is not None:
                del self.shipments[idx]

    def _fire_callbacks(self, previous: dict, current: dict) -> None:
        moved = (
            current.get("driver_lat") is not None
            and (previous.get("driver_lat"), previous.get("driver_lng"))
            != (current.get("driver_lat"), current.get("driver_lng"))
        )
        if moved and self.on_location_change:
            self.on_location_change(current)
        if previous.get("status") != current.get("status") and self.on_status_change:
            self.on_status_change(current, previous.get("status"))

    async def follow(self, subscription: Subscription) -> None:
        """Consommer un abonnement jusqu'a annulation / Consume a subscription until cancelled."""
        try:
            async for change in subscription:
                self.apply(change)
        finally:
            subscription.close()
