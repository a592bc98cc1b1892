from sqlalchemy import Column, String, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.database.db import Base


class Incident(Base):
    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    status = Column(String, nullable=False, default="investigating")
    impact = Column(String, nullable=False, default="degraded")
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=False)
    created_by_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)


class IncidentUpdate(Base):
    __tablename__ = "incident_updates"

    id = Column(String(36), primary_key=True, index=True)
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="CASCADE"), index=True, nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String, nullable=False)
    created_by_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ServiceIncident(Base):
    __tablename__ = "service_incidents"
    __table_args__ = (UniqueConstraint("service_id", "incident_id", name="uq_service_incident"),)

    id = Column(String(36), primary_key=True, index=True)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="CASCADE"), index=True, nullable=False)
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
