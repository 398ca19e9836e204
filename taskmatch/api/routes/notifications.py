# taskmatch/api/routes/notifications.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskmatch.core.security import AuthSession, get_auth_session
from taskmatch.db.base import get_db
from taskmatch.schemas.notification import NotificationListResponse, NotificationResponse
from taskmatch.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    service = NotificationService(db)
    return NotificationListResponse(
        unread_count=service.unread_count(session),
        notifications=[NotificationResponse.model_validate(n) for n in service.list_for(session)],
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    return NotificationService(db).mark_read(session, notification_id)


@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    updated = NotificationService(db).mark_all_read(session)
    return {"updated": updated}
