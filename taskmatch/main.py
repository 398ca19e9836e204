import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskmatch.core.config import FRONTEND_URL, LOG_LEVEL
from taskmatch.core.errors import StoreError, TaskMatchError
from taskmatch.db.base import Base, engine
from taskmatch.db.models import application, notification, profile, service  # noqa: F401  register tables
from taskmatch import realtime  # noqa: F401  session listeners
from taskmatch.api.routes import auth
from taskmatch.api.routes import applications as applications_router
from taskmatch.api.routes import dashboard as dashboard_router
from taskmatch.api.routes import notifications as notifications_router
from taskmatch.api.routes import profile as profile_router
from taskmatch.api.routes import realtime as realtime_router
from taskmatch.api.routes import services as services_router

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="TaskMatch API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)


@app.exception_handler(TaskMatchError)
async def taskmatch_error_handler(request: Request, exc: TaskMatchError):
    if isinstance(exc, StoreError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} refused ({exc.kind.value}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
def root():
    return {"message": "TaskMatch API running"}


app.include_router(auth.router, prefix="/api/auth")
app.include_router(services_router.router)
app.include_router(applications_router.router)
app.include_router(dashboard_router.router)
app.include_router(profile_router.router)
app.include_router(notifications_router.router)
app.include_router(realtime_router.router)
