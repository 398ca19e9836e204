# taskmatch/schemas/application.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from taskmatch.schemas.profile import ProfileMini


# --- CREATE ---
class ApplicationCreate(BaseModel):
    message: str = ""
    proposed_price: Optional[float] = Field(default=None, gt=0)


# --- RESPONSE ---
class ApplicationResponse(BaseModel):
    id: str
    service_id: str
    provider_id: str
    proposed_price: float
    message: Optional[str]
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ApplicationWithProvider(ApplicationResponse):
    provider: Optional[ProfileMini] = None


class SubmitApplicationResponse(BaseModel):
    application: ApplicationResponse
    competing_applications: int
    message: str


class ApplyCheckResponse(BaseModel):
    outcome: str  # login_required | not_provider | already_applied | service_not_open | confirm | ready
    can_apply: bool
    message: Optional[str] = None
    return_to: Optional[str] = None
    login_url: Optional[str] = None
    competing_applications: int = 0
