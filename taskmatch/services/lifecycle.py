"""
Service / application lifecycle.

Service:      open -> in_progress -> completed
Application:  pending -> accepted | rejected

Every transition is a single transaction: the status writes and the
notifications they produce commit together or not at all. Accepting an
application locks the service row, so two concurrent accepts cannot both
see it open.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from taskmatch.core.constants import (
    SERVICE_CATEGORIES,
    ApplicationStatus,
    NotificationType,
    ServiceStatus,
)
from taskmatch.core.errors import (
    AlreadyApplied,
    InvalidState,
    NotAuthorized,
    NotFoundError,
    ServiceNotOpen,
    StoreError,
    ValidationError,
)
from taskmatch.core.security import AuthSession
from taskmatch.db.models.application import ServiceApplication
from taskmatch.db.models.service import Service
from taskmatch.services.notifications import notify

logger = logging.getLogger(__name__)


@dataclass
class SubmitResult:
    application: ServiceApplication
    # pending applications that already existed; advisory only
    competing_applications: int


def validate_service_fields(
    title: Optional[str],
    description: Optional[str],
    category: Optional[str],
    budget: Optional[float],
    location: Optional[str],
    deadline: Optional[date],
    today: Optional[date] = None,
) -> dict:
    """Return {field: message} for every missing or invalid field."""
    today = today or date.today()
    errors = {}

    if not (title or "").strip():
        errors["title"] = "Title is required"
    if not (description or "").strip():
        errors["description"] = "Description is required"
    if budget is None or not math.isfinite(budget) or budget <= 0:
        errors["budget"] = "Budget must be greater than zero"
    if not (location or "").strip():
        errors["location"] = "Location is required"

    if deadline is None:
        errors["deadline"] = "Deadline is required"
    elif deadline < today:
        errors["deadline"] = "Deadline cannot be in the past"

    if not category:
        errors["category"] = "Category is required"
    elif category not in SERVICE_CATEGORIES:
        errors["category"] = f"Category must be one of: {', '.join(SERVICE_CATEGORIES)}"

    return errors


class LifecycleService:
    """Service layer for every write that moves a service or application."""

    def __init__(self, db: Session):
        self.db = db

    # --------------------------
    # lookups
    # --------------------------
    def _get_service(self, service_id: str, lock: bool = False) -> Service:
        query = self.db.query(Service).filter(Service.id == service_id)
        if lock:
            query = query.with_for_update().populate_existing()
        service = query.first()
        if not service:
            raise NotFoundError("Service not found")
        return service

    def _get_application(self, application_id: str) -> ServiceApplication:
        application = (
            self.db.query(ServiceApplication).filter(ServiceApplication.id == application_id).first()
        )
        if not application:
            raise NotFoundError("Application not found")
        return application

    def _owned_service_for(self, session: AuthSession, application: ServiceApplication) -> Service:
        if not session.is_client:
            raise NotAuthorized("Only clients can manage applications.")
        service = self._get_service(application.service_id, lock=True)
        if service.client_id != session.user_id:
            raise NotAuthorized("You can only manage applications for your own services.")
        return service

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store failure while trying to {action}", exc_info=True)
            raise StoreError(f"Could not {action}. Please try again.") from e

    # --------------------------
    # CreateService
    # --------------------------
    def create_service(
        self,
        session: AuthSession,
        title: str,
        description: str,
        category: str,
        budget: Optional[float],
        location: str,
        deadline: Optional[date],
    ) -> Service:
        if not session.is_client:
            raise NotAuthorized("Only clients can publish services.")

        errors = validate_service_fields(title, description, category, budget, location, deadline)
        if errors:
            raise ValidationError(errors)

        service = Service(
            client_id=session.user_id,
            title=title.strip(),
            description=description.strip(),
            category=category,
            budget=float(budget),
            location=location.strip(),
            deadline=deadline,
            status=ServiceStatus.OPEN.value,
        )
        self.db.add(service)
        self._commit("publish the service")
        self.db.refresh(service)

        logger.info(f"Service {service.id} published by client {session.user_id}")
        return service

    # --------------------------
    # SubmitApplication
    # --------------------------
    def submit_application(
        self,
        session: AuthSession,
        service_id: str,
        proposed_price: Optional[float] = None,
        message: str = "",
    ) -> SubmitResult:
        if not session.is_provider:
            raise NotAuthorized("Only service providers can apply.")

        service = self._get_service(service_id)

        existing = (
            self.db.query(ServiceApplication)
            .filter(
                ServiceApplication.service_id == service_id,
                ServiceApplication.provider_id == session.user_id,
            )
            .first()
        )
        if existing:
            raise AlreadyApplied()

        if service.status != ServiceStatus.OPEN.value:
            raise ServiceNotOpen()

        price = service.budget if proposed_price is None else proposed_price
        if price is None or not math.isfinite(price) or price <= 0:
            raise ValidationError({"proposed_price": "Proposed price must be greater than zero"})

        competing = (
            self.db.query(ServiceApplication)
            .filter(
                ServiceApplication.service_id == service_id,
                ServiceApplication.status == ApplicationStatus.PENDING.value,
            )
            .count()
        )

        application = ServiceApplication(
            service_id=service_id,
            provider_id=session.user_id,
            proposed_price=float(price),
            message=message,
            status=ApplicationStatus.PENDING.value,
        )
        self.db.add(application)
        notify(
            self.db,
            service.client_id,
            "New application",
            f'A provider applied to "{service.title}".',
        )

        try:
            self.db.commit()
        except IntegrityError as e:
            # lost a race against our own pre-check
            self.db.rollback()
            raise AlreadyApplied() from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Store failure while submitting application", exc_info=True)
            raise StoreError("Could not send the application. Please try again.") from e

        self.db.refresh(application)
        if competing:
            logger.info(f"Provider {session.user_id} applied to {service_id} alongside {competing} other(s)")
        else:
            logger.info(f"Provider {session.user_id} applied to {service_id}")
        return SubmitResult(application=application, competing_applications=competing)

    # --------------------------
    # AcceptApplication
    # --------------------------
    def accept_application(self, session: AuthSession, application_id: str) -> ServiceApplication:
        application = self._get_application(application_id)
        service = self._owned_service_for(session, application)

        if application.status != ApplicationStatus.PENDING.value:
            raise InvalidState(f"This application was already {application.status}.")
        if service.status != ServiceStatus.OPEN.value:
            raise InvalidState("This service is no longer open.")

        application.status = ApplicationStatus.ACCEPTED.value

        siblings = (
            self.db.query(ServiceApplication)
            .filter(
                ServiceApplication.service_id == service.id,
                ServiceApplication.id != application.id,
                ServiceApplication.status == ApplicationStatus.PENDING.value,
            )
            .all()
        )
        for sibling in siblings:
            sibling.status = ApplicationStatus.REJECTED.value
            notify(
                self.db,
                sibling.provider_id,
                "Application not selected",
                f'Another provider was chosen for "{service.title}".',
                NotificationType.WARNING,
            )

        service.status = ServiceStatus.IN_PROGRESS.value
        notify(
            self.db,
            application.provider_id,
            "Application accepted",
            f'You were selected for "{service.title}".',
            NotificationType.SUCCESS,
        )

        self._commit("accept the application")
        self.db.refresh(application)

        logger.info(
            f"Application {application.id} accepted; {len(siblings)} sibling(s) rejected; "
            f"service {service.id} in progress"
        )
        return application

    # --------------------------
    # RejectApplication
    # --------------------------
    def reject_application(self, session: AuthSession, application_id: str) -> ServiceApplication:
        application = self._get_application(application_id)
        service = self._owned_service_for(session, application)

        if application.status != ApplicationStatus.PENDING.value:
            raise InvalidState(f"This application was already {application.status}.")

        application.status = ApplicationStatus.REJECTED.value
        notify(
            self.db,
            application.provider_id,
            "Application declined",
            f'Your application for "{service.title}" was declined.',
            NotificationType.WARNING,
        )

        self._commit("reject the application")
        self.db.refresh(application)

        logger.info(f"Application {application.id} rejected")
        return application

    # --------------------------
    # CompleteService
    # --------------------------
    def complete_service(self, session: AuthSession, service_id: str) -> Service:
        service = self._get_service(service_id, lock=True)

        accepted = (
            self.db.query(ServiceApplication)
            .filter(
                ServiceApplication.service_id == service.id,
                ServiceApplication.status == ApplicationStatus.ACCEPTED.value,
            )
            .first()
        )
        is_owner = service.client_id == session.user_id
        is_assigned = accepted is not None and accepted.provider_id == session.user_id
        if not (is_owner or is_assigned):
            raise NotAuthorized("Only the client or the assigned provider can complete this service.")

        if service.status != ServiceStatus.IN_PROGRESS.value:
            raise InvalidState(f"Only services in progress can be completed (current status: {service.status}).")

        service.status = ServiceStatus.COMPLETED.value
        if is_owner:
            counterpart = accepted.provider_id if accepted else None
        else:
            counterpart = service.client_id
        if counterpart:
            notify(
                self.db,
                counterpart,
                "Service completed",
                f'"{service.title}" was marked as completed.',
                NotificationType.SUCCESS,
            )

        self._commit("complete the service")
        self.db.refresh(service)

        logger.info(f"Service {service.id} completed by {session.user_id}")
        return service
