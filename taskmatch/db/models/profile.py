# taskmatch/db/models/profile.py
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from taskmatch.db.base import Base, new_id, utcnow


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    user_type = Column(String, nullable=False)  # client | provider, fixed at sign-up
    credits = Column(Integer, nullable=False, default=0)

    # auth identity; bumping token_version revokes every issued token
    password_hash = Column(String, nullable=False)
    token_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    provider_profile = relationship(
        "ProviderProfile",
        back_populates="profile",
        uselist=False,
        lazy="selectin",
    )


class ProviderProfile(Base):
    """1:1 extension of Profile, only for providers."""

    __tablename__ = "provider_profiles"

    id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    skills = Column(JSON, nullable=True)
    experience = Column(String, nullable=True)
    hourly_rate = Column(Float, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    rating = Column(Float, nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    subscription_type = Column(String, nullable=False, default="free")  # free | premium
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)

    profile = relationship("Profile", back_populates="provider_profile")
