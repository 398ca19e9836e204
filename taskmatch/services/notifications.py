"""
Notification rows for lifecycle events.

Writers only stage rows on the caller's session; they are committed together
with the transition that produced them, and the realtime feed pushes them
to the recipient after commit.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskmatch.core.constants import NotificationType
from taskmatch.core.errors import NotFoundError, StoreError
from taskmatch.core.security import AuthSession
from taskmatch.db.models.notification import Notification

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    user_id: str,
    title: str,
    message: str,
    type: NotificationType = NotificationType.INFO,
) -> Notification:
    notification = Notification(user_id=user_id, title=title, message=message, type=type.value)
    db.add(notification)
    logger.debug(f"Queued {type.value} notification for {user_id}: {title}")
    return notification


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def list_for(self, session: AuthSession) -> list[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == session.user_id)
            .order_by(Notification.created_at.desc())
            .all()
        )

    def unread_count(self, session: AuthSession) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == session.user_id, Notification.read == False)  # noqa: E712
            .count()
        )

    def mark_read(self, session: AuthSession, notification_id: str) -> Notification:
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == session.user_id)
            .first()
        )
        if not notification:
            raise NotFoundError("Notification not found")

        notification.read = True
        self._commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, session: AuthSession) -> int:
        unread = (
            self.db.query(Notification)
            .filter(Notification.user_id == session.user_id, Notification.read == False)  # noqa: E712
            .all()
        )
        for notification in unread:
            notification.read = True
        self._commit()
        return len(unread)

    def _commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to update notifications", exc_info=True)
            raise StoreError("Could not update notifications. Please try again.") from e
