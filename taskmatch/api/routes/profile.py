# taskmatch/api/routes/profile.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskmatch.core.errors import NotAuthorized, StoreError
from taskmatch.core.security import AuthSession, get_auth_session, get_current_user
from taskmatch.db.base import get_db
from taskmatch.db.models.profile import Profile, ProviderProfile
from taskmatch.schemas.profile import (
    MeResponse,
    ProfileResponse,
    ProviderProfileResponse,
    ProviderProfileUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/me", response_model=MeResponse)
def get_me(profile: Profile = Depends(get_current_user)):
    provider_profile = None
    if profile.provider_profile is not None:
        provider_profile = ProviderProfileResponse.model_validate(profile.provider_profile)

    return MeResponse(
        profile=ProfileResponse.model_validate(profile),
        provider_profile=provider_profile,
    )


@router.put("/provider", response_model=ProviderProfileResponse)
def update_provider_profile(
    payload: ProviderProfileUpdate,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(get_auth_session),
    profile: Profile = Depends(get_current_user),
):
    if not session.is_provider:
        raise NotAuthorized("Only service providers have a professional profile")

    provider_profile = profile.provider_profile
    if provider_profile is None:
        provider_profile = ProviderProfile(id=profile.id)
        db.add(provider_profile)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(provider_profile, field, value)

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update provider profile {profile.id}", exc_info=True)
        raise StoreError("Could not save your profile. Please try again.") from e

    db.refresh(provider_profile)
    logger.info(f"Provider profile updated for {profile.id}")
    return provider_profile
