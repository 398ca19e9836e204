# taskmatch/api/routes/dashboard.py
import logging
from typing import Optional, Union
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from taskmatch.core.constants import UserType
from taskmatch.core.security import AuthSession, get_auth_session
from taskmatch.db.base import get_db
from taskmatch.schemas.dashboard import ClientDashboard, ProviderDashboard
from taskmatch.services.dashboard import filter_dashboard, load_dashboard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

_ROLE_PATHS = {
    UserType.CLIENT: "/dashboard/client",
    UserType.PROVIDER: "/dashboard/provider",
}


def _redirect_to_own(session: AuthSession, q: Optional[str]) -> RedirectResponse:
    # wrong dashboard for this role: send them to their own
    logger.info(f"{session.role.value} {session.user_id} redirected to own dashboard")
    url = _ROLE_PATHS[session.role]
    if q:
        url = f"{url}?{urlencode({'q': q})}"
    return RedirectResponse(url=url, status_code=303)


@router.get("", response_model=Union[ClientDashboard, ProviderDashboard])
def my_dashboard(
    q: Optional[str] = Query(None, description="Free-text filter over every bucket"),
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    return filter_dashboard(load_dashboard(db, session), q)


@router.get("/client", response_model=ClientDashboard)
def client_dashboard(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    if session.role != UserType.CLIENT:
        return _redirect_to_own(session, q)
    return filter_dashboard(load_dashboard(db, session), q)


@router.get("/provider", response_model=ProviderDashboard)
def provider_dashboard(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    if session.role != UserType.PROVIDER:
        return _redirect_to_own(session, q)
    return filter_dashboard(load_dashboard(db, session), q)
