import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from taskmatch.core.constants import UserType
from taskmatch.core.errors import AuthError, ConflictError, StoreError
from taskmatch.core.security import (
    AuthSession,
    get_auth_session,
    get_current_user,
    hash_password,
    issue_tokens,
    refresh_session,
    verify_password,
)
from taskmatch.db.base import get_db
from taskmatch.db.models.profile import Profile, ProviderProfile
from taskmatch.schemas.user import (
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    SessionResponse,
    TokenResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _email_taken(db: Session, email: str) -> bool:
    return db.query(Profile).filter(Profile.email == email).first() is not None


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    email = payload.email.lower()
    if _email_taken(db, email):
        raise ConflictError("Email already registered")

    profile = Profile(
        email=email,
        full_name=payload.full_name.strip(),
        user_type=payload.user_type.value,
        password_hash=hash_password(payload.password),
    )
    db.add(profile)
    try:
        db.flush()
        # providers get an empty professional profile right away
        if payload.user_type == UserType.PROVIDER:
            db.add(ProviderProfile(id=profile.id))
        db.commit()
    except IntegrityError as e:
        # another sign-up with this email won the race
        db.rollback()
        raise ConflictError("Email already registered") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to register {email}", exc_info=True)
        raise StoreError("Could not create your account. Please try again.") from e
    db.refresh(profile)

    logger.info(f"Registered {profile.user_type} {profile.id}")
    return issue_tokens(profile)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    profile = db.query(Profile).filter(Profile.email == payload.email.lower()).first()

    if not profile or not verify_password(payload.password, profile.password_hash):
        raise AuthError("Invalid credentials")

    return issue_tokens(profile)


# Explicit refresh: trade a refresh token for a new pair
@router.post("/refresh", response_model=TokenResponse)
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)):
    return refresh_session(db, payload.refresh_token)


# Sign out everywhere: every token issued so far stops validating
@router.post("/logout")
def logout(profile: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    profile.token_version += 1
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to sign out {profile.id}", exc_info=True)
        raise StoreError("Could not sign you out. Please try again.") from e

    logger.info(f"Signed out {profile.id}")
    return {"message": "Signed out"}


@router.get("/session", response_model=SessionResponse)
def current_session(session: AuthSession = Depends(get_auth_session)):
    return session
