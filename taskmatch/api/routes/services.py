# taskmatch/api/routes/services.py

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from taskmatch.core.constants import ServiceStatus
from taskmatch.core.errors import NotFoundError
from taskmatch.core.security import AuthSession, get_auth_session, get_optional_session
from taskmatch.db.base import get_db
from taskmatch.db.models.application import ServiceApplication
from taskmatch.db.models.service import Service
from taskmatch.schemas.application import (
    ApplicationCreate,
    ApplicationResponse,
    ApplyCheckResponse,
    SubmitApplicationResponse,
)
from taskmatch.schemas.profile import ProfileMini
from taskmatch.schemas.service import (
    ServiceCreate,
    ServiceListItem,
    ServiceListResponse,
    ServiceResponse,
)
from taskmatch.services.lifecycle import LifecycleService
from taskmatch.services.submission import SUCCESS_MESSAGE, ApplicationSubmissionFlow

router = APIRouter(prefix="/services", tags=["services"])

LIKE_ESCAPE = "\\"


def _like_pattern(term: str) -> str:
    # user text is matched literally, wildcards included
    escaped = term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", r"\%").replace("_", r"\_")
    return f"%{escaped}%"


# Client publishes a service

@router.post("", response_model=ServiceResponse, status_code=201)
def create_service(
    service_data: ServiceCreate,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    return LifecycleService(db).create_service(
        session,
        title=service_data.title,
        description=service_data.description,
        category=service_data.category,
        budget=service_data.budget,
        location=service_data.location,
        deadline=service_data.deadline,
    )


# Public listing of open services

@router.get("", response_model=ServiceListResponse)
def list_open_services(
    q: Optional[str] = Query(None, description="Search in title, description and location"),
    category: Optional[str] = Query(None),
    sort: Optional[str] = Query("recent", description="recent | budget"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    applications_count = (
        db.query(
            ServiceApplication.service_id.label("service_id"),
            func.count(ServiceApplication.id).label("cnt"),
        )
        .group_by(ServiceApplication.service_id)
        .subquery()
    )

    base = (
        db.query(Service, func.coalesce(applications_count.c.cnt, 0).label("applications_count"))
        .outerjoin(applications_count, applications_count.c.service_id == Service.id)
        .filter(Service.status == ServiceStatus.OPEN.value)
    )

    if q:
        q_like = _like_pattern(q.strip())
        base = base.filter(
            Service.title.ilike(q_like, escape=LIKE_ESCAPE)
            | Service.description.ilike(q_like, escape=LIKE_ESCAPE)
            | Service.location.ilike(q_like, escape=LIKE_ESCAPE)
        )

    if category:
        base = base.filter(Service.category == category)

    if sort == "budget":
        base = base.order_by(desc(Service.budget), desc(Service.created_at))
    else:
        base = base.order_by(desc(Service.created_at))

    total = base.count()
    rows = base.offset((page - 1) * per_page).limit(per_page).all()

    items = []
    for svc, count in rows:
        item = ServiceListItem.model_validate(svc)
        item.client = ProfileMini.model_validate(svc.client) if svc.client else None
        item.applications_count = int(count or 0)
        item.has_applications = item.applications_count > 0
        items.append(item)

    return ServiceListResponse(total=int(total or 0), page=page, per_page=per_page, items=items)


@router.get("/{service_id}", response_model=ServiceListItem)
def get_service(service_id: str, db: Session = Depends(get_db)):
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise NotFoundError("Service not found")

    item = ServiceListItem.model_validate(service)
    item.client = ProfileMini.model_validate(service.client) if service.client else None
    item.applications_count = len(service.applications)
    item.has_applications = item.applications_count > 0
    return item


# Client (or the assigned provider) marks the service done

@router.post("/{service_id}/complete", response_model=ServiceResponse)
def complete_service(
    service_id: str,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    return LifecycleService(db).complete_service(session, service_id)


# Provider checks whether they may apply; works signed out too

@router.get("/{service_id}/apply-check", response_model=ApplyCheckResponse)
def apply_check(
    service_id: str,
    db: Session = Depends(get_db),
    session: Optional[AuthSession] = Depends(get_optional_session),
):
    check = ApplicationSubmissionFlow(db).check(session, service_id)
    return ApplyCheckResponse(
        outcome=check.outcome.value,
        can_apply=check.can_apply,
        message=check.message,
        return_to=check.return_to,
        login_url=check.login_url,
        competing_applications=check.competing_applications,
    )


# Provider applies

@router.post("/{service_id}/applications", response_model=SubmitApplicationResponse, status_code=201)
def submit_application(
    service_id: str,
    payload: ApplicationCreate,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
):
    result = ApplicationSubmissionFlow(db).submit(
        session,
        service_id,
        message=payload.message,
        proposed_price=payload.proposed_price,
    )
    return SubmitApplicationResponse(
        application=ApplicationResponse.model_validate(result.application),
        competing_applications=result.competing_applications,
        message=SUCCESS_MESSAGE,
    )
