# taskmatch/api/routes/applications.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskmatch.core.security import AuthSession, get_auth_session
from taskmatch.db.base import get_db
from taskmatch.schemas.application import ApplicationResponse
from taskmatch.services.lifecycle import LifecycleService

router = APIRouter(prefix="/applications", tags=["applications"])


# Client accepts one applicant; the rest of the service's applicants are rejected

@router.post("/{application_id}/accept", response_model=ApplicationResponse)
def accept_application(
    application_id: str,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    return LifecycleService(db).accept_application(session, application_id)


# Client rejects a single applicant

@router.post("/{application_id}/reject", response_model=ApplicationResponse)
def reject_application(
    application_id: str,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    return LifecycleService(db).reject_application(session, application_id)
