# taskmatch/schemas/dashboard.py
from typing import List, Literal, Optional

from pydantic import BaseModel

from taskmatch.schemas.application import ApplicationResponse, ApplicationWithProvider
from taskmatch.schemas.profile import ProfileMini, ProfileResponse, ProviderProfileResponse
from taskmatch.schemas.service import ServiceResponse


# --- client side ---
class ClientServiceItem(ServiceResponse):
    # pending applications while open; the accepted one afterwards
    applications: List[ApplicationWithProvider] = []
    provider: Optional[ProfileMini] = None  # accepted applicant


class ClientDashboard(BaseModel):
    role: Literal["client"] = "client"
    profile: ProfileResponse
    open_services: List[ClientServiceItem]
    in_progress_services: List[ClientServiceItem]
    completed_services: List[ClientServiceItem]


# --- provider side ---
class ProviderServiceItem(BaseModel):
    service: ServiceResponse
    client: Optional[ProfileMini] = None
    application: ApplicationResponse


class ProviderDashboard(BaseModel):
    role: Literal["provider"] = "provider"
    profile: ProfileResponse
    provider_profile: Optional[ProviderProfileResponse] = None
    pending_applications: List[ProviderServiceItem]
    in_progress_services: List[ProviderServiceItem]
    completed_services: List[ProviderServiceItem]
