# taskmatch/schemas/service.py

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel

from taskmatch.schemas.profile import ProfileMini


# Client creates service. Fields stay loose here so the lifecycle layer can
# report every missing field with its own message instead of a bare 422.
class ServiceCreate(BaseModel):
    title: str = ""
    description: str = ""
    category: str = ""
    budget: Optional[float] = None
    location: str = ""
    deadline: Optional[date] = None


# What API returns
class ServiceResponse(BaseModel):
    id: str
    client_id: str

    title: str
    description: str
    category: str
    budget: float
    location: str
    deadline: Optional[date]
    status: str

    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Public listing row
class ServiceListItem(ServiceResponse):
    client: Optional[ProfileMini] = None
    has_applications: bool = False
    applications_count: int = 0


class ServiceListResponse(BaseModel):
    total: int
    page: int
    per_page: int
    items: List[ServiceListItem]
