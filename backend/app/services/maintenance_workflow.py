import logging
from datetime import datetime
from typing import List, Optional, Sequence

from app.domain.entities import MaintenanceEntity, ServiceEntity
from app.domain.patches import MaintenancePatch
from app.repositories.maintenance_repository import MaintenanceRepository
from app.repositories.service_repository import ServiceRepository
from app.services.incident_workflow import resolve_services

logger = logging.getLogger(__name__)


class MaintenanceWorkflow:
    """Maintenance windows and their affected services. Service statuses are left alone."""

    def __init__(self, maintenances: MaintenanceRepository, services: ServiceRepository):
        self.maintenances = maintenances
        self.services = services

    def create(
        self,
        organization_id: str,
        title: str,
        scheduled_start_time: datetime,
        scheduled_end_time: datetime,
        description: Optional[str] = None,
        service_ids: Sequence[str] = (),
        user_id: Optional[str] = None,
    ) -> MaintenanceEntity:
        maintenance = MaintenanceEntity.create(
            title=title,
            organization_id=organization_id,
            scheduled_start_time=scheduled_start_time,
            scheduled_end_time=scheduled_end_time,
            description=description,
            created_by_id=user_id,
        )
        affected = resolve_services(self.services, organization_id, service_ids)
        self.maintenances.create(maintenance)
        for service in affected:
            self.maintenances.add_service_to_maintenance(maintenance.id, service.id)
        return maintenance

    def change_status(
        self,
        maintenance: MaintenanceEntity,
        status: str,
        actual_start_time: Optional[datetime] = None,
        actual_end_time: Optional[datetime] = None,
    ) -> MaintenanceEntity:
        maintenance.update_status(status, actual_start_time=actual_start_time, actual_end_time=actual_end_time)
        return self.maintenances.update_status(maintenance)

    def edit(self, maintenance: MaintenanceEntity, patch: MaintenancePatch) -> MaintenanceEntity:
        maintenance.apply(patch)
        return self.maintenances.update(maintenance)

    def attach_services(self, maintenance: MaintenanceEntity, service_ids: Sequence[str]) -> List[ServiceEntity]:
        for service in resolve_services(self.services, maintenance.organization_id, service_ids):
            self.maintenances.add_service_to_maintenance(maintenance.id, service.id)
        return self.maintenances.get_services_for_maintenance(maintenance.id)

    def detach_services(self, maintenance: MaintenanceEntity, service_ids: Sequence[str]) -> List[ServiceEntity]:
        for service in resolve_services(self.services, maintenance.organization_id, service_ids):
            self.maintenances.remove_service_from_maintenance(maintenance.id, service.id)
        return self.maintenances.get_services_for_maintenance(maintenance.id)

    def delete(self, maintenance: MaintenanceEntity) -> None:
        self.maintenances.delete(maintenance.id)
        logger.info(
            "maintenance deleted",
            extra={"maintenance_id": maintenance.id, "organization_id": maintenance.organization_id},
        )
