import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from app.core.errors import NotFoundError
from app.domain.entities import MaintenanceEntity, ServiceEntity, coerce_enum, ensure_utc, new_id, utcnow
from app.domain.status import MaintenanceStatus
from app.models.maintenance import Maintenance, ServiceMaintenance
from app.models.models import Service
from app.repositories.base import BaseRepository, Page, paginate
from app.repositories.service_repository import service_to_entity
from app.services import events
from app.services.events import EventType

logger = logging.getLogger(__name__)

ACTIVE = "active"


@dataclass
class MaintenanceFilter:
    # a concrete status, or "active" for scheduled and in_progress
    status: Optional[str] = None
    upcoming: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = 1
    limit: Optional[int] = None


def maintenance_to_entity(row: Maintenance) -> MaintenanceEntity:
    return MaintenanceEntity(
        id=row.id,
        title=row.title,
        description=row.description,
        status=MaintenanceStatus(row.status),
        organization_id=row.organization_id,
        created_by_id=row.created_by_id,
        scheduled_start_time=ensure_utc(row.scheduled_start_time),
        scheduled_end_time=ensure_utc(row.scheduled_end_time),
        actual_start_time=ensure_utc(row.actual_start_time),
        actual_end_time=ensure_utc(row.actual_end_time),
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


class MaintenanceRepository(BaseRepository):

    def _get_row(self, maintenance_id: str) -> Maintenance:
        row = self.db.query(Maintenance).filter(Maintenance.id == maintenance_id).first()
        if not row:
            raise NotFoundError("Maintenance", maintenance_id)
        return row

    def create(self, maintenance: MaintenanceEntity) -> MaintenanceEntity:
        self.db.add(Maintenance(
            id=maintenance.id,
            title=maintenance.title,
            description=maintenance.description,
            status=maintenance.status.value,
            organization_id=maintenance.organization_id,
            created_by_id=maintenance.created_by_id,
            scheduled_start_time=maintenance.scheduled_start_time,
            scheduled_end_time=maintenance.scheduled_end_time,
            actual_start_time=maintenance.actual_start_time,
            actual_end_time=maintenance.actual_end_time,
            created_at=maintenance.created_at,
            updated_at=maintenance.updated_at,
        ))
        self._commit()
        logger.info(
            "maintenance scheduled",
            extra={"maintenance_id": maintenance.id, "organization_id": maintenance.organization_id},
        )
        self._publish(
            maintenance.organization_id,
            EventType.MAINTENANCE_CREATE,
            events.maintenance_created(maintenance),
        )
        return maintenance

    def find_by_id(self, maintenance_id: str) -> Optional[MaintenanceEntity]:
        row = self.db.query(Maintenance).filter(Maintenance.id == maintenance_id).first()
        return maintenance_to_entity(row) if row else None

    def find_by_organization_id(
        self,
        organization_id: str,
        filters: Optional[MaintenanceFilter] = None,
    ) -> Page[MaintenanceEntity]:
        filters = filters or MaintenanceFilter()
        query = self.db.query(Maintenance).filter(Maintenance.organization_id == organization_id)
        if filters.status == ACTIVE:
            query = query.filter(Maintenance.status != MaintenanceStatus.COMPLETED.value)
        elif filters.status:
            status = coerce_enum(MaintenanceStatus, filters.status, "status")
            query = query.filter(Maintenance.status == status.value)
        if filters.upcoming:
            query = query.filter(
                Maintenance.status == MaintenanceStatus.SCHEDULED.value,
                Maintenance.scheduled_start_time > utcnow(),
            )
        if filters.start_date:
            query = query.filter(Maintenance.scheduled_start_time >= ensure_utc(filters.start_date))
        if filters.end_date:
            query = query.filter(Maintenance.scheduled_start_time <= ensure_utc(filters.end_date))
        query = query.order_by(Maintenance.scheduled_start_time.asc())
        return paginate(query, filters.page, filters.limit, maintenance_to_entity)

    def update(self, maintenance: MaintenanceEntity) -> MaintenanceEntity:
        row = self._get_row(maintenance.id)
        row.title = maintenance.title
        row.description = maintenance.description
        row.scheduled_start_time = maintenance.scheduled_start_time
        row.scheduled_end_time = maintenance.scheduled_end_time
        row.updated_at = maintenance.updated_at
        self._commit()
        self._publish(
            maintenance.organization_id,
            EventType.MAINTENANCE_UPDATE,
            events.maintenance_updated(maintenance),
        )
        return maintenance

    def update_status(self, maintenance: MaintenanceEntity) -> MaintenanceEntity:
        """Store a transition already applied to ``maintenance`` and announce it."""
        row = self._get_row(maintenance.id)
        row.status = maintenance.status.value
        row.actual_start_time = maintenance.actual_start_time
        row.actual_end_time = maintenance.actual_end_time
        row.updated_at = maintenance.updated_at
        self._commit()
        logger.info(
            "maintenance status changed",
            extra={"maintenance_id": maintenance.id, "status": maintenance.status.value},
        )
        self._publish(
            maintenance.organization_id,
            EventType.MAINTENANCE_STATUS_CHANGE,
            events.maintenance_status_changed(maintenance),
        )
        return maintenance

    def delete(self, maintenance_id: str) -> None:
        row = self._get_row(maintenance_id)
        self.db.delete(row)
        self._commit()

    def _is_linked(self, maintenance_id: str, service_id: str) -> bool:
        row = (
            self.db.query(ServiceMaintenance.id)
            .filter(
                ServiceMaintenance.maintenance_id == maintenance_id,
                ServiceMaintenance.service_id == service_id,
            )
            .first()
        )
        return row is not None

    def add_service_to_maintenance(self, maintenance_id: str, service_id: str) -> bool:
        """Returns False when the service was already attached."""
        if self._is_linked(maintenance_id, service_id):
            return False
        self.db.add(ServiceMaintenance(id=new_id(), maintenance_id=maintenance_id, service_id=service_id))
        try:
            self._commit()
        except IntegrityError:
            # a concurrent attach of the same service got there first
            return False
        return True

    def remove_service_from_maintenance(self, maintenance_id: str, service_id: str) -> bool:
        deleted = (
            self.db.query(ServiceMaintenance)
            .filter(
                ServiceMaintenance.maintenance_id == maintenance_id,
                ServiceMaintenance.service_id == service_id,
            )
            .delete(synchronize_session=False)
        )
        self._commit()
        return bool(deleted)

    def get_services_for_maintenance(self, maintenance_id: str) -> List[ServiceEntity]:
        rows = (
            self.db.query(Service)
            .join(ServiceMaintenance, ServiceMaintenance.service_id == Service.id)
            .filter(ServiceMaintenance.maintenance_id == maintenance_id)
            .order_by(Service.name.asc())
            .all()
        )
        return [service_to_entity(row) for row in rows]
