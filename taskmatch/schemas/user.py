from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from taskmatch.core.constants import UserType


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1, max_length=120)
    user_type: UserType


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class SessionResponse(BaseModel):
    user_id: str
    email: str
    role: UserType
    expires_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    session: SessionResponse
