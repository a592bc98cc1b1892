from sqlalchemy import Column, String, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.database.db import Base


class Maintenance(Base):
    __tablename__ = "maintenances"

    id = Column(String(36), primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    status = Column(String, nullable=False, default="scheduled") # scheduled, in_progress, completed
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=False)
    created_by_id = Column(String, nullable=True)
    scheduled_start_time = Column(DateTime(timezone=True), index=True, nullable=False)
    scheduled_end_time = Column(DateTime(timezone=True), nullable=False)
    actual_start_time = Column(DateTime(timezone=True), nullable=True)
    actual_end_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ServiceMaintenance(Base):
    __tablename__ = "service_maintenances"
    __table_args__ = (UniqueConstraint("service_id", "maintenance_id", name="uq_service_maintenance"),)

    id = Column(String(36), primary_key=True, index=True)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="CASCADE"), index=True, nullable=False)
    maintenance_id = Column(String(36), ForeignKey("maintenances.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, index=True)
    content = Column(Text, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    maintenance_id = Column(String(36), ForeignKey("maintenances.id", ondelete="CASCADE"), index=True, nullable=True)
    # Present in the schema, no read/write path uses it yet
    incident_id = Column(String(36), ForeignKey("incidents.id", ondelete="CASCADE"), index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
