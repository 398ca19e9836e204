"""
Dashboard tests: role buckets, incremental updates from change events,
store failures and the free-text filter.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from taskmatch.core.constants import UserType
from taskmatch.core.errors import NotFoundError, StoreError
from taskmatch.core.security import AuthSession
from taskmatch.db.models.service import Service
from taskmatch.realtime import bus
from taskmatch.services.dashboard import DashboardView, filter_dashboard, filter_services, load_dashboard

from tests.conftest import session_for

CLIENT_BUCKETS = ("open_services", "in_progress_services", "completed_services")
PROVIDER_BUCKETS = ("pending_applications", "in_progress_services", "completed_services")


def _client_ids(dashboard):
    return {name: [item.id for item in getattr(dashboard, name)] for name in CLIENT_BUCKETS}


def _provider_ids(dashboard):
    return {name: [item.application.id for item in getattr(dashboard, name)] for name in PROVIDER_BUCKETS}


def _set_status(db, service, status):
    db.query(Service).filter(Service.id == service.id).update({"status": status})
    db.commit()


@pytest.fixture
def marketplace(lifecycle, service_factory, client_session, provider_session, second_provider_session, db):
    """One client with an open, an in-progress, a completed and a cancelled service."""
    open_service = service_factory(title="Bakery website", description="Landing page for a bakery", location="Campinas")
    in_progress = service_factory(title="Mobile app", description="Delivery app for Android", location="Sao Paulo")
    completed = service_factory(
        title="Logo refresh", description="New brand mark", category="design", location="Remote"
    )
    cancelled = service_factory(title="Old request", description="No longer needed")

    pending = lifecycle.submit_application(provider_session, open_service.id, message="I can do this").application
    working = lifecycle.submit_application(provider_session, in_progress.id, message="Flutter expert").application
    losing = lifecycle.submit_application(second_provider_session, in_progress.id, message="Pick me").application
    finished = lifecycle.submit_application(provider_session, completed.id, message="Vector work").application

    lifecycle.accept_application(client_session, working.id)
    lifecycle.accept_application(client_session, finished.id)
    lifecycle.complete_service(client_session, completed.id)
    _set_status(db, cancelled, "cancelled")

    return {
        "open": open_service,
        "in_progress": in_progress,
        "completed": completed,
        "cancelled": cancelled,
        "pending": pending,
        "working": working,
        "losing": losing,
        "finished": finished,
    }


# ============================================================================
# BUCKETS
# ============================================================================

class TestClientDashboard:

    def test_services_bucketed_by_status(self, db, client_session, marketplace):
        dashboard = load_dashboard(db, client_session)

        assert dashboard.role == "client"
        assert _client_ids(dashboard) == {
            "open_services": [marketplace["open"].id],
            "in_progress_services": [marketplace["in_progress"].id],
            "completed_services": [marketplace["completed"].id],
        }

    def test_open_service_lists_pending_applicants(self, db, client_session, marketplace):
        dashboard = load_dashboard(db, client_session)

        item = dashboard.open_services[0]
        assert [a.id for a in item.applications] == [marketplace["pending"].id]
        assert item.applications[0].provider.full_name == "Paulo Provider"
        assert item.provider is None

    def test_in_progress_service_shows_accepted_provider(self, db, client_session, marketplace):
        dashboard = load_dashboard(db, client_session)

        item = dashboard.in_progress_services[0]
        assert [a.id for a in item.applications] == [marketplace["working"].id]
        assert item.provider.full_name == "Paulo Provider"

    def test_new_service_has_no_applicants(self, db, client_session, service_factory):
        service = service_factory()

        dashboard = load_dashboard(db, client_session)

        assert [s.id for s in dashboard.open_services] == [service.id]
        assert dashboard.open_services[0].status == "open"
        assert dashboard.open_services[0].applications == []

    def test_newest_first(self, db, client_session, service_factory):
        older = service_factory(title="Older")
        newer = service_factory(title="Newer")
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        db.query(Service).filter(Service.id == older.id).update({"created_at": base})
        db.query(Service).filter(Service.id == newer.id).update({"created_at": base + timedelta(days=1)})
        db.commit()

        dashboard = load_dashboard(db, client_session)

        assert [s.id for s in dashboard.open_services] == [newer.id, older.id]

    def test_missing_profile(self, db):
        ghost = AuthSession(
            user_id="ghost",
            email="ghost@taskmatch.io",
            role=UserType.CLIENT,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=5),
        )
        with pytest.raises(NotFoundError):
            load_dashboard(db, ghost)


class TestProviderDashboard:

    def test_applications_bucketed(self, db, provider_session, marketplace):
        dashboard = load_dashboard(db, provider_session)

        assert dashboard.role == "provider"
        assert dashboard.provider_profile is not None
        assert _provider_ids(dashboard) == {
            "pending_applications": [marketplace["pending"].id],
            "in_progress_services": [marketplace["working"].id],
            "completed_services": [marketplace["finished"].id],
        }

    def test_item_carries_service_and_client(self, db, provider_session, marketplace):
        dashboard = load_dashboard(db, provider_session)

        item = dashboard.pending_applications[0]
        assert item.service.id == marketplace["open"].id
        assert item.client.full_name == "Carla Client"

    def test_rejected_applications_hidden(self, db, second_provider_session, marketplace):
        dashboard = load_dashboard(db, second_provider_session)

        assert _provider_ids(dashboard) == {name: [] for name in PROVIDER_BUCKETS}

    def test_not_pending_before_applying(self, db, provider_session, service_factory):
        service_factory()

        dashboard = load_dashboard(db, provider_session)

        assert dashboard.pending_applications == []

    def test_orphaned_pending_application_hidden(
        self, db, lifecycle, service_factory, second_provider_session
    ):
        service = service_factory()
        lifecycle.submit_application(second_provider_session, service.id)
        # service moved on without the application being resolved
        _set_status(db, service, "in_progress")

        dashboard = load_dashboard(db, second_provider_session)

        assert _provider_ids(dashboard) == {name: [] for name in PROVIDER_BUCKETS}


# ============================================================================
# STORE FAILURES
# ============================================================================

class TestDashboardStoreFailures:

    def test_profile_failure(self, db, client_session, monkeypatch):
        def broken_query(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(db, "query", broken_query)

        with pytest.raises(StoreError) as exc:
            load_dashboard(db, client_session)

        assert exc.value.message == "Failed to load profile"
        assert exc.value.extra == {"group": "profile", "retry": "/dashboard"}

    def test_services_failure(self, db, client_session, monkeypatch):
        real_query = db.query

        def flaky_query(*entities, **kwargs):
            if entities and entities[0] is Service:
                raise OperationalError("SELECT", {}, Exception("timeout"))
            return real_query(*entities, **kwargs)

        monkeypatch.setattr(db, "query", flaky_query)

        with pytest.raises(StoreError) as exc:
            load_dashboard(db, client_session)

        assert exc.value.message == "Failed to load services"


# ============================================================================
# INCREMENTAL UPDATES
# ============================================================================

class _Recorder:
    def __init__(self):
        self.events = []
        self.subscriptions = []

    def __enter__(self):
        for table in ("services", "service_applications"):
            self.subscriptions.append(bus.subscribe(table, self.events.append))
        return self

    def __exit__(self, *exc):
        for sub in self.subscriptions:
            sub.unsubscribe()


class TestDashboardView:

    def test_client_view_follows_lifecycle(
        self, db, lifecycle, service_factory, client_session, provider_session
    ):
        view = DashboardView.load(db, client_session)

        with _Recorder() as recorder:
            service = service_factory()
            app = lifecycle.submit_application(provider_session, service.id).application
            lifecycle.accept_application(client_session, app.id)

        changed = [view.apply_change(event, db) for event in recorder.events]

        assert all(changed)
        assert _client_ids(view.snapshot()) == _client_ids(load_dashboard(db, client_session))
        assert view.snapshot().in_progress_services[0].provider.full_name == "Paulo Provider"

    def test_provider_view_drops_lost_application(
        self, db, lifecycle, service_factory, client_session, provider_session, second_provider_session
    ):
        service = service_factory()
        mine = lifecycle.submit_application(provider_session, service.id).application
        rival = lifecycle.submit_application(second_provider_session, service.id).application
        view = DashboardView.load(db, provider_session)
        assert _provider_ids(view.snapshot())["pending_applications"] == [mine.id]

        with _Recorder() as recorder:
            lifecycle.accept_application(client_session, rival.id)

        for event in recorder.events:
            view.apply_change(event, db)

        assert _provider_ids(view.snapshot()) == {name: [] for name in PROVIDER_BUCKETS}
        assert _provider_ids(view.snapshot()) == _provider_ids(load_dashboard(db, provider_session))

    def test_other_clients_services_ignored(self, db, profile_factory, service_factory, client_session):
        stranger = session_for(profile_factory(UserType.CLIENT))
        view = DashboardView.load(db, stranger)

        with _Recorder() as recorder:
            service_factory()

        assert [view.apply_change(event, db) for event in recorder.events] == [False]
        assert view.snapshot().open_services == []

    def test_reconcile_picks_up_missed_changes(self, db, service_factory, client_session):
        view = DashboardView.load(db, client_session)
        service = service_factory()
        assert view.snapshot().open_services == []

        view.reconcile(db)

        assert [s.id for s in view.snapshot().open_services] == [service.id]


# ============================================================================
# FILTER
# ============================================================================

class TestFilter:

    def test_blank_term_returns_input(self, db, client_session, marketplace):
        items = load_dashboard(db, client_session).open_services

        assert filter_services(items, "") is items
        assert filter_services(items, "   ") is items
        assert filter_services(items, None) is items

    def test_matches_service_text_case_insensitively(self, db, client_session, marketplace):
        dashboard = load_dashboard(db, client_session)
        items = dashboard.open_services + dashboard.in_progress_services + dashboard.completed_services

        assert [i.id for i in filter_services(items, "BAKERY")] == [marketplace["open"].id]
        assert [i.id for i in filter_services(items, "sao paulo")] == [marketplace["in_progress"].id]
        assert filter_services(items, "plumbing") == []

    def test_matches_applicant_name_and_message(self, db, client_session, marketplace):
        dashboard = load_dashboard(db, client_session)

        assert [i.id for i in filter_services(dashboard.open_services, "paulo")] == [marketplace["open"].id]
        assert [i.id for i in filter_services(dashboard.in_progress_services, "flutter")] == [
            marketplace["in_progress"].id
        ]

    def test_provider_items_match_client_name(self, db, provider_session, marketplace):
        dashboard = load_dashboard(db, provider_session)

        assert len(filter_services(dashboard.pending_applications, "carla")) == 1
        assert filter_services(dashboard.pending_applications, "rita") == []

    def test_filter_dashboard_applies_to_every_bucket(self, db, client_session, marketplace):
        dashboard = load_dashboard(db, client_session)

        filtered = filter_dashboard(dashboard, "logo")

        assert _client_ids(filtered) == {
            "open_services": [],
            "in_progress_services": [],
            "completed_services": [marketplace["completed"].id],
        }
        assert filter_dashboard(dashboard, "") is dashboard
