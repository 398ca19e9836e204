# taskmatch/core/security.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from taskmatch.core.config import (
    ACCESS_TTL_SECONDS,
    AUTH_ISSUER,
    AUTH_SECRET,
    JWT_ALGORITHM,
    REFRESH_TTL_SECONDS,
)
from taskmatch.core.constants import UserType
from taskmatch.core.errors import AuthError
from taskmatch.db.base import get_db
from taskmatch.db.models.profile import Profile

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

bearer = HTTPBearer(auto_error=False)

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class AuthSession:
    """The authenticated caller, passed explicitly into every operation."""

    user_id: str
    email: str
    role: UserType
    expires_at: datetime

    @property
    def is_client(self) -> bool:
        return self.role == UserType.CLIENT

    @property
    def is_provider(self) -> bool:
        return self.role == UserType.PROVIDER

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _encode(profile: Profile, scope: str, ttl: int) -> str:
    now = datetime.now(timezone.utc)
    body = {
        "iss": AUTH_ISSUER,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl)).timestamp()),
        "sub": profile.id,
        "email": profile.email,
        "role": profile.user_type,
        "ver": profile.token_version,
        "scope": scope,
    }
    return jwt.encode(body, AUTH_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(profile: Profile) -> str:
    return _encode(profile, ACCESS, ACCESS_TTL_SECONDS)


def create_refresh_token(profile: Profile) -> str:
    return _encode(profile, REFRESH, REFRESH_TTL_SECONDS)


def decode_token(token: str, scope: str = ACCESS) -> dict:
    try:
        claims = jwt.decode(token, AUTH_SECRET, algorithms=[JWT_ALGORITHM], issuer=AUTH_ISSUER)
    except ExpiredSignatureError as e:
        raise AuthError("Session expired. Please sign in again.") from e
    except JWTError as e:
        raise AuthError("Invalid token.") from e

    if claims.get("scope") != scope:
        raise AuthError(f"{scope.capitalize()} token required.")
    return claims


def session_from_token(db: Session, token: str, scope: str = ACCESS) -> AuthSession:
    """Decode a token and check it against the live profile (sign-out revokes)."""
    claims = decode_token(token, scope)
    profile = db.query(Profile).filter(Profile.id == claims["sub"]).first()
    if not profile or profile.token_version != claims.get("ver"):
        raise AuthError("Session is no longer valid. Please sign in again.")

    return AuthSession(
        user_id=profile.id,
        email=profile.email,
        role=UserType(profile.user_type),
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
    )


def issue_tokens(profile: Profile) -> dict:
    access = create_access_token(profile)
    claims = decode_token(access)
    return {
        "access_token": access,
        "refresh_token": create_refresh_token(profile),
        "token_type": "bearer",
        "session": AuthSession(
            user_id=profile.id,
            email=profile.email,
            role=UserType(profile.user_type),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        ),
    }


def refresh_session(db: Session, refresh_token: str) -> dict:
    """Exchange a refresh token for a new token pair."""
    session = session_from_token(db, refresh_token, scope=REFRESH)
    profile = db.query(Profile).filter(Profile.id == session.user_id).first()
    logger.info(f"Refreshed session for {session.user_id}")
    return issue_tokens(profile)


def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> Optional[AuthSession]:
    if credentials is None:
        return None
    return session_from_token(db, credentials.credentials)


def get_auth_session(session: Optional[AuthSession] = Depends(get_optional_session)) -> AuthSession:
    if session is None:
        raise AuthError("Not authenticated. Please sign in.")
    return session


def get_current_user(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
) -> Profile:
    profile = db.query(Profile).filter(Profile.id == session.user_id).first()
    if not profile:
        raise AuthError("Session is no longer valid. Please sign in again.")
    return profile
