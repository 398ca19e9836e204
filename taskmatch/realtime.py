"""
Realtime change feed.

Committed ORM inserts and updates are turned into ChangeEvent objects and
fanned out to subscribers, the same contract a hosted Postgres changes
channel offers: subscribe to INSERT / UPDATE / "*" on a table, optionally
narrowed to rows where one column equals a value.

Events are collected on flush and only published after the surrounding
transaction commits; a rollback discards them.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
ANY = "*"

_PENDING_KEY = "taskmatch_pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    type: str  # INSERT | UPDATE
    new: dict = field(default_factory=dict)


@dataclass
class Subscription:
    table: str
    callback: Callable[[ChangeEvent], Any]
    event: str = ANY
    filter: Optional[tuple] = None  # (column, value)
    _bus: Optional["RealtimeBus"] = None

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if self.event != ANY and change.type != self.event:
            return False
        if self.filter is not None:
            column, value = self.filter
            return change.new.get(column) == value
        return True

    def unsubscribe(self):
        if self._bus is not None:
            self._bus.remove(self)
            self._bus = None


class RealtimeBus:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def subscribe(self, table: str, callback, event: str = ANY, filter: Optional[tuple] = None) -> Subscription:
        sub = Subscription(table=table, callback=callback, event=event, filter=filter, _bus=self)
        with self._lock:
            self._subscriptions.append(sub)
        logger.debug(f"Subscribed to {event} on {table} (filter={filter})")
        return sub

    def remove(self, sub: Subscription):
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def publish(self, change: ChangeEvent):
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(change)]
        for sub in targets:
            try:
                sub.callback(change)
            except Exception:
                # one broken listener must not stop delivery to the others
                logger.exception(f"Realtime subscriber failed for {change.type} on {change.table}")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)


bus = RealtimeBus()


def row_to_dict(obj) -> dict:
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


@event.listens_for(Session, "after_flush")
def _collect_changes(session, flush_context):
    pending = session.info.setdefault(_PENDING_KEY, [])
    for obj in session.new:
        pending.append(ChangeEvent(obj.__tablename__, INSERT, row_to_dict(obj)))
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            pending.append(ChangeEvent(obj.__tablename__, UPDATE, row_to_dict(obj)))


@event.listens_for(Session, "after_commit")
def _publish_changes(session):
    pending = session.info.pop(_PENDING_KEY, [])
    for change in pending:
        bus.publish(change)


@event.listens_for(Session, "after_soft_rollback")
def _discard_changes(session, previous_transaction):
    session.info.pop(_PENDING_KEY, None)
