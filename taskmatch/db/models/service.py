# taskmatch/db/models/service.py

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from taskmatch.db.base import Base, new_id, utcnow


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=new_id)

    # Foreign keys
    client_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    # Basic details
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False)
    budget = Column(Float, nullable=False)
    location = Column(String, nullable=False)
    deadline = Column(Date, nullable=True)

    # Status: open -> in_progress -> completed (cancelled exists but nothing sets it)
    status = Column(String, nullable=False, default="open", index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    client = relationship("Profile", foreign_keys=[client_id], lazy="selectin")
    applications = relationship(
        "ServiceApplication",
        back_populates="service",
        order_by="ServiceApplication.created_at",
        lazy="selectin",
    )
