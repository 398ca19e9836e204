"""
Dashboard aggregation for both roles.

One code path serves clients and providers; the role only selects which rows
are loaded (_ROW_LOADERS) and how a row maps to a bucket (_BUCKET_OF).
Bucket membership is always re-derived from the row's own status, never from
the query that happened to fetch it.

DashboardView keeps the loaded rows in memory so realtime change events can
be applied one row at a time; reconcile() reloads everything.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskmatch.core.constants import ApplicationStatus, ServiceStatus, UserType
from taskmatch.core.errors import NotFoundError, StoreError
from taskmatch.core.security import AuthSession
from taskmatch.db.models.application import ServiceApplication
from taskmatch.db.models.profile import Profile
from taskmatch.db.models.service import Service
from taskmatch.realtime import ChangeEvent
from taskmatch.schemas.application import ApplicationResponse, ApplicationWithProvider
from taskmatch.schemas.dashboard import (
    ClientDashboard,
    ClientServiceItem,
    ProviderDashboard,
    ProviderServiceItem,
)
from taskmatch.schemas.profile import ProfileMini, ProfileResponse, ProviderProfileResponse
from taskmatch.schemas.service import ServiceResponse

logger = logging.getLogger(__name__)

Dashboard = Union[ClientDashboard, ProviderDashboard]

DASHBOARD_URL = "/dashboard"

_GROUP_MESSAGES = {
    "profile": "Failed to load profile",
    "services": "Failed to load services",
    "applications": "Failed to load applications",
}

PENDING = ApplicationStatus.PENDING.value
ACCEPTED = ApplicationStatus.ACCEPTED.value


def _guarded(group: str, fetch):
    """Run one fetch; any store failure aborts the whole dashboard load."""
    try:
        return fetch()
    except SQLAlchemyError as e:
        logger.error(f"Dashboard {group} load failed", exc_info=True)
        raise StoreError(_GROUP_MESSAGES[group], group=group, retry=DASHBOARD_URL) from e


def _mini(profile: Optional[Profile]) -> Optional[ProfileMini]:
    return ProfileMini.model_validate(profile) if profile is not None else None


@dataclass
class _ClientEntry:
    service: ServiceResponse
    applications: dict = field(default_factory=dict)  # id -> ApplicationWithProvider


@dataclass
class _ProviderEntry:
    service: ServiceResponse
    client: Optional[ProfileMini]
    application: ApplicationResponse


# --------------------------
# row loaders
# --------------------------
def _client_rows(db: Session, session: AuthSession) -> dict:
    services = _guarded(
        "services",
        lambda: db.query(Service)
        .filter(Service.client_id == session.user_id)
        .order_by(Service.created_at.desc())
        .all(),
    )
    service_ids = [s.id for s in services]
    applications = _guarded(
        "applications",
        lambda: db.query(ServiceApplication)
        .filter(ServiceApplication.service_id.in_(service_ids))
        .all()
        if service_ids
        else [],
    )

    entries = {s.id: _ClientEntry(service=ServiceResponse.model_validate(s)) for s in services}
    for app in applications:
        item = ApplicationWithProvider.model_validate(app)
        item.provider = _mini(app.provider)
        entries[app.service_id].applications[app.id] = item
    return entries


def _provider_rows(db: Session, session: AuthSession) -> dict:
    applications = _guarded(
        "applications",
        lambda: db.query(ServiceApplication)
        .filter(
            ServiceApplication.provider_id == session.user_id,
            ServiceApplication.status.in_([PENDING, ACCEPTED]),
        )
        .all(),
    )
    service_ids = list({a.service_id for a in applications})
    services = _guarded(
        "services",
        lambda: db.query(Service).filter(Service.id.in_(service_ids)).all() if service_ids else [],
    )
    by_id = {s.id: s for s in services}

    entries = {}
    for app in applications:
        service = by_id.get(app.service_id)
        if service is None:
            continue
        entries[app.id] = _ProviderEntry(
            service=ServiceResponse.model_validate(service),
            client=_mini(service.client),
            application=ApplicationResponse.model_validate(app),
        )
    return entries


# --------------------------
# bucketing
# --------------------------
def _client_bucket(entry: _ClientEntry) -> Optional[str]:
    return {
        ServiceStatus.OPEN.value: "open_services",
        ServiceStatus.IN_PROGRESS.value: "in_progress_services",
        ServiceStatus.COMPLETED.value: "completed_services",
    }.get(entry.service.status)


def _provider_bucket(entry: _ProviderEntry) -> Optional[str]:
    app_status = entry.application.status
    service_status = entry.service.status
    if app_status == PENDING:
        # orphaned once someone else was picked or the service moved on
        return "pending_applications" if service_status == ServiceStatus.OPEN.value else None
    if app_status == ACCEPTED:
        if service_status == ServiceStatus.IN_PROGRESS.value:
            return "in_progress_services"
        if service_status == ServiceStatus.COMPLETED.value:
            return "completed_services"
    return None


def _client_item(entry: _ClientEntry) -> ClientServiceItem:
    apps = sorted(entry.applications.values(), key=lambda a: _as_utc(a.created_at))
    if entry.service.status == ServiceStatus.OPEN.value:
        shown = [a for a in apps if a.status == PENDING]
        provider = None
    else:
        shown = [a for a in apps if a.status == ACCEPTED]
        provider = shown[0].provider if shown else None
    return ClientServiceItem(**entry.service.model_dump(), applications=shown, provider=provider)


def _provider_item(entry: _ProviderEntry) -> ProviderServiceItem:
    return ProviderServiceItem(service=entry.service, client=entry.client, application=entry.application)


_ROW_LOADERS = {UserType.CLIENT: _client_rows, UserType.PROVIDER: _provider_rows}
_BUCKET_OF = {UserType.CLIENT: _client_bucket, UserType.PROVIDER: _provider_bucket}
_ITEM_OF = {UserType.CLIENT: _client_item, UserType.PROVIDER: _provider_item}
_BUCKETS = {
    UserType.CLIENT: ("open_services", "in_progress_services", "completed_services"),
    UserType.PROVIDER: ("pending_applications", "in_progress_services", "completed_services"),
}


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive values, fresh change events carry aware ones
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _created_at(item):
    service = item.service if isinstance(item, ProviderServiceItem) else item
    return _as_utc(service.created_at)


class DashboardView:
    """In-memory dashboard for one session."""

    def __init__(self, session: AuthSession):
        self.session = session
        self.role = session.role
        self.profile: Optional[ProfileResponse] = None
        self.provider_profile = None
        self.entries: dict = {}

    @classmethod
    def load(cls, db: Session, session: AuthSession) -> "DashboardView":
        view = cls(session)
        view.reconcile(db)
        return view

    def reconcile(self, db: Session):
        """Full reload; also the periodic safety net behind incremental updates."""
        profile = _guarded(
            "profile",
            lambda: db.query(Profile).filter(Profile.id == self.session.user_id).first(),
        )
        if profile is None:
            raise NotFoundError("Profile not found")

        self.profile = ProfileResponse.model_validate(profile)
        self.provider_profile = (
            ProviderProfileResponse.model_validate(profile.provider_profile)
            if profile.provider_profile is not None
            else None
        )
        self.entries = _ROW_LOADERS[self.role](db, self.session)
        logger.debug(f"Dashboard reloaded for {self.session.user_id}: {len(self.entries)} row(s)")

    def snapshot(self) -> Dashboard:
        bucket_of = _BUCKET_OF[self.role]
        item_of = _ITEM_OF[self.role]
        buckets = {name: [] for name in _BUCKETS[self.role]}
        for entry in self.entries.values():
            bucket = bucket_of(entry)
            if bucket:
                buckets[bucket].append(item_of(entry))
        for items in buckets.values():
            items.sort(key=_created_at, reverse=True)

        if self.role == UserType.CLIENT:
            return ClientDashboard(profile=self.profile, **buckets)
        return ProviderDashboard(profile=self.profile, provider_profile=self.provider_profile, **buckets)

    # --------------------------
    # incremental updates
    # --------------------------
    def apply_change(self, change: ChangeEvent, db: Session) -> bool:
        """Patch the view from one change event. Returns True if anything changed."""
        if self.role == UserType.CLIENT:
            return self._apply_client(change, db)
        return self._apply_provider(change, db)

    def _apply_client(self, change: ChangeEvent, db: Session) -> bool:
        row = change.new
        if change.table == Service.__tablename__:
            if row.get("client_id") != self.session.user_id:
                return False
            service = ServiceResponse.model_validate(row)
            entry = self.entries.get(service.id)
            if entry is None:
                self.entries[service.id] = _ClientEntry(service=service)
            else:
                entry.service = service
            return True

        if change.table == ServiceApplication.__tablename__:
            entry = self.entries.get(row.get("service_id"))
            if entry is None:
                return False
            item = ApplicationWithProvider.model_validate(row)
            known = entry.applications.get(item.id)
            if known is not None:
                item.provider = known.provider
            else:
                item.provider = _mini(db.query(Profile).filter(Profile.id == item.provider_id).first())
            entry.applications[item.id] = item
            return True

        return False

    def _apply_provider(self, change: ChangeEvent, db: Session) -> bool:
        row = change.new
        if change.table == Service.__tablename__:
            service = ServiceResponse.model_validate(row)
            touched = False
            for entry in self.entries.values():
                if entry.service.id == service.id:
                    entry.service = service
                    touched = True
            return touched

        if change.table == ServiceApplication.__tablename__:
            if row.get("provider_id") != self.session.user_id:
                return False
            application = ApplicationResponse.model_validate(row)
            if application.status not in (PENDING, ACCEPTED):
                return self.entries.pop(application.id, None) is not None

            entry = self.entries.get(application.id)
            if entry is not None:
                entry.application = application
                return True

            service = db.query(Service).filter(Service.id == application.service_id).first()
            if service is None:
                return False
            self.entries[application.id] = _ProviderEntry(
                service=ServiceResponse.model_validate(service),
                client=_mini(service.client),
                application=application,
            )
            return True

        return False


def load_dashboard(db: Session, session: AuthSession) -> Dashboard:
    return DashboardView.load(db, session).snapshot()


# --------------------------
# free-text filter
# --------------------------
def _haystack(item) -> list:
    if isinstance(item, ProviderServiceItem):
        service = item.service
        applications = [item.application]
        people = [item.client]
    else:
        service = item
        applications = item.applications
        people = [getattr(a, "provider", None) for a in applications] + [item.provider]

    texts = [service.title, service.description, service.location]
    texts += [a.message for a in applications]
    texts += [p.full_name for p in people if p is not None]
    return [t.lower() for t in texts if t]


def filter_services(items: list, term: Optional[str]) -> list:
    """Case-insensitive substring filter; a blank term returns the input as-is."""
    needle = (term or "").strip().lower()
    if not needle:
        return items
    return [item for item in items if any(needle in text for text in _haystack(item))]


def filter_dashboard(dashboard: Dashboard, term: Optional[str]) -> Dashboard:
    if not (term or "").strip():
        return dashboard
    buckets = _BUCKETS[UserType(dashboard.role)]
    return dashboard.model_copy(update={name: filter_services(getattr(dashboard, name), term) for name in buckets})
