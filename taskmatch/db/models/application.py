# taskmatch/db/models/application.py
from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from taskmatch.db.base import Base, new_id, utcnow


class ServiceApplication(Base):
    __tablename__ = "service_applications"
    __table_args__ = (
        UniqueConstraint("service_id", "provider_id", name="uq_application_service_provider"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    proposed_price = Column(Float, nullable=False)
    message = Column(Text, nullable=True)

    status = Column(String, nullable=False, default="pending")  # pending | accepted | rejected

    created_at = Column(DateTime(timezone=True), default=utcnow)

    # relationships
    service = relationship("Service", back_populates="applications")
    provider = relationship("Profile", foreign_keys=[provider_id], lazy="selectin")
