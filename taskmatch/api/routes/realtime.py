# taskmatch/api/routes/realtime.py
"""
Realtime socket: a dashboard snapshot on connect, then pushed updates.

Message types sent to the client:
    snapshot      full dashboard (on connect and after an idle reconcile)
    dashboard     full dashboard after a change event touched it
    notification  a new notification row for the caller
    error         a store failure; the socket is closed afterwards

The socket closes with AUTH_FAILED_CLOSE_CODE on a bad token and once the
session behind it expires.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from taskmatch.core import config
from taskmatch.core.errors import AuthError, TaskMatchError
from taskmatch.core.security import session_from_token
from taskmatch.db.base import get_db
from taskmatch.db.models.application import ServiceApplication
from taskmatch.db.models.notification import Notification
from taskmatch.db.models.service import Service
from taskmatch.realtime import INSERT, bus
from taskmatch.schemas.notification import NotificationResponse
from taskmatch.services.dashboard import DashboardView

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

AUTH_FAILED_CLOSE_CODE = 4401


def _load_view(db: Session, session) -> DashboardView:
    db.rollback()
    return DashboardView.load(db, session)


def _reconcile(db: Session, view: DashboardView):
    db.rollback()
    view.reconcile(db)


def _apply(db: Session, view: DashboardView, change) -> bool:
    db.rollback()
    return view.apply_change(change, db)


def _dashboard_message(kind: str, view: DashboardView) -> dict:
    return {"type": kind, "dashboard": view.snapshot().model_dump(mode="json")}


@router.websocket("/realtime")
async def realtime_feed(websocket: WebSocket, token: str = Query(""), db: Session = Depends(get_db)):
    await websocket.accept()

    try:
        session = await run_in_threadpool(session_from_token, db, token)
    except AuthError as e:
        logger.info(f"Realtime connection refused: {e.message}")
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE)
        return

    loop = asyncio.get_running_loop()
    changes: asyncio.Queue = asyncio.Queue()

    def on_change(change):
        # called from whichever thread committed
        loop.call_soon_threadsafe(changes.put_nowait, change)

    # subscribe before the first load so nothing committed in between is lost
    subscriptions = [
        bus.subscribe(Notification.__tablename__, on_change, event=INSERT, filter=("user_id", session.user_id)),
        bus.subscribe(Service.__tablename__, on_change),
        bus.subscribe(ServiceApplication.__tablename__, on_change),
    ]
    receiver = None
    getter = None
    logger.info(f"Realtime feed opened for {session.user_id}")

    try:
        view = await run_in_threadpool(_load_view, db, session)
        await websocket.send_json(_dashboard_message("snapshot", view))

        receiver = asyncio.ensure_future(websocket.receive())
        while True:
            getter = asyncio.ensure_future(changes.get())
            done, _ = await asyncio.wait(
                {receiver, getter},
                timeout=config.REALTIME_RECONCILE_SECONDS,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if receiver in done:
                message = receiver.result()
                if message["type"] == "websocket.disconnect":
                    break
                # anything the client sends is a keepalive
                receiver = asyncio.ensure_future(websocket.receive())

            if session.is_expired():
                logger.info(f"Realtime session expired for {session.user_id}")
                await websocket.close(code=AUTH_FAILED_CLOSE_CODE)
                break

            if getter not in done:
                getter.cancel()
                if not done:
                    await run_in_threadpool(_reconcile, db, view)
                    await websocket.send_json(_dashboard_message("snapshot", view))
                continue

            change = getter.result()
            if change.table == Notification.__tablename__:
                notification = NotificationResponse.model_validate(change.new)
                await websocket.send_json(
                    {"type": "notification", "notification": notification.model_dump(mode="json")}
                )
            elif await run_in_threadpool(_apply, db, view, change):
                await websocket.send_json(_dashboard_message("dashboard", view))

    except WebSocketDisconnect:
        pass
    except TaskMatchError as e:
        logger.error(f"Realtime feed failed for {session.user_id}: {e.message}")
        await websocket.send_json({"type": "error", **e.to_dict()})
        await websocket.close(code=1011)
    finally:
        for task in (receiver, getter):
            if task is not None and not task.done():
                task.cancel()
        for sub in subscriptions:
            sub.unsubscribe()
        logger.info(f"Realtime feed closed for {session.user_id}")
