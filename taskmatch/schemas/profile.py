# taskmatch/schemas/profile.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ProfileMini(BaseModel):
    id: str
    full_name: Optional[str]
    avatar_url: Optional[str]

    class Config:
        from_attributes = True


class ProfileResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str]
    avatar_url: Optional[str]
    user_type: str
    credits: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProviderProfileResponse(BaseModel):
    id: str
    skills: Optional[List[str]] = None
    experience: Optional[str] = None
    hourly_rate: Optional[float] = None
    is_verified: bool
    rating: float
    total_reviews: int
    subscription_type: str
    subscription_expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MeResponse(BaseModel):
    profile: ProfileResponse
    provider_profile: Optional[ProviderProfileResponse] = None


# Provider edits their professional profile
class ProviderProfileUpdate(BaseModel):
    skills: Optional[List[str]] = None
    experience: Optional[str] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
