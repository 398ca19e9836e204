"""Provider-side gate in front of SubmitApplication."""

import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from taskmatch.core.config import FRONTEND_URL
from taskmatch.core.constants import ApplicationStatus, ServiceStatus
from taskmatch.core.errors import NotFoundError
from taskmatch.core.security import AuthSession
from taskmatch.db.models.application import ServiceApplication
from taskmatch.db.models.service import Service
from taskmatch.services.lifecycle import LifecycleService, SubmitResult

SUCCESS_MESSAGE = "Application sent successfully!"


class ApplyOutcome(str, enum.Enum):
    LOGIN_REQUIRED = "login_required"
    NOT_PROVIDER = "not_provider"
    ALREADY_APPLIED = "already_applied"
    SERVICE_NOT_OPEN = "service_not_open"
    CONFIRM = "confirm"
    READY = "ready"


@dataclass
class ApplyCheck:
    outcome: ApplyOutcome
    message: Optional[str] = None
    return_to: Optional[str] = None
    login_url: Optional[str] = None
    competing_applications: int = 0

    @property
    def can_apply(self) -> bool:
        return self.outcome in (ApplyOutcome.CONFIRM, ApplyOutcome.READY)


class ApplicationSubmissionFlow:
    def __init__(self, db: Session):
        self.db = db
        self.lifecycle = LifecycleService(db)

    def check(self, session: Optional[AuthSession], service_id: str) -> ApplyCheck:
        service = self.db.query(Service).filter(Service.id == service_id).first()
        if not service:
            raise NotFoundError("Service not found")

        if session is None:
            return_to = f"/services/{service_id}"
            return ApplyCheck(
                outcome=ApplyOutcome.LOGIN_REQUIRED,
                message="Sign in to apply for this service.",
                return_to=return_to,
                login_url=f"{FRONTEND_URL}/login?next={return_to}",
            )

        if not session.is_provider:
            return ApplyCheck(
                outcome=ApplyOutcome.NOT_PROVIDER,
                message="Only service providers can apply.",
            )

        applied = (
            self.db.query(ServiceApplication)
            .filter(
                ServiceApplication.service_id == service_id,
                ServiceApplication.provider_id == session.user_id,
            )
            .first()
        )
        if applied:
            return ApplyCheck(
                outcome=ApplyOutcome.ALREADY_APPLIED,
                message="You have already applied to this service.",
            )

        if service.status != ServiceStatus.OPEN.value:
            return ApplyCheck(
                outcome=ApplyOutcome.SERVICE_NOT_OPEN,
                message="This service is no longer accepting applications.",
            )

        competing = (
            self.db.query(ServiceApplication)
            .filter(
                ServiceApplication.service_id == service_id,
                ServiceApplication.status == ApplicationStatus.PENDING.value,
            )
            .count()
        )
        if competing:
            return ApplyCheck(
                outcome=ApplyOutcome.CONFIRM,
                message="Other providers have already applied to this service. Do you still want to apply?",
                competing_applications=competing,
            )
        return ApplyCheck(outcome=ApplyOutcome.READY)

    def submit(
        self,
        session: AuthSession,
        service_id: str,
        message: str = "",
        proposed_price: Optional[float] = None,
    ) -> SubmitResult:
        return self.lifecycle.submit_application(
            session,
            service_id,
            proposed_price=proposed_price,
            message=message,
        )
