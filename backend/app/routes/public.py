from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from app.domain.entities import MaintenanceEntity, OrganizationEntity, ServiceEntity
from app.repositories.comment_repository import CommentRepository
from app.repositories.incident_repository import IncidentFilter, IncidentRepository
from app.repositories.maintenance_repository import MaintenanceFilter, MaintenanceRepository
from app.repositories.service_repository import ServiceRepository
from app.routes.deps import (
    Pagination,
    ensure_same_tenant,
    get_comment_repository,
    get_incident_repository,
    get_maintenance_repository,
    get_pagination,
    get_public_organization,
    get_service_repository,
)
from app.routes.incidents import INCIDENT_STATUS_FILTER
from app.routes.maintenances import MAINTENANCE_STATUS_FILTER
from app.schemas.mappers import (
    map_comment,
    map_incident,
    map_maintenance,
    map_page,
    map_public_service,
    map_service_summary,
)

# Read-only mirror for the public status page; no identity required
router = APIRouter(prefix="/public/organizations/{slug}")

OVERVIEW_LIMIT = 5


def _load_public_maintenance(
    maintenance_id: str,
    organization: OrganizationEntity = Depends(get_public_organization),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> MaintenanceEntity:
    return ensure_same_tenant(maintenances.find_by_id(maintenance_id), organization, "Maintenance")


@router.get("")
def get_public_organization_detail(
    organization: OrganizationEntity = Depends(get_public_organization),
) -> Dict[str, Any]:
    return {
        "id": organization.id,
        "name": organization.name,
        "slug": organization.slug,
        "logoUrl": organization.logo_url,
    }


@router.get("/status")
def get_public_status(
    organization: OrganizationEntity = Depends(get_public_organization),
    services: ServiceRepository = Depends(get_service_repository),
    incidents: IncidentRepository = Depends(get_incident_repository),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> Dict[str, Any]:
    public_services = services.get_public_services(organization.id)
    overall = ServiceEntity.get_highest_severity_status(service.status for service in public_services)
    active_incidents = incidents.find_by_organization_id(
        organization.id, IncidentFilter(status="active", limit=OVERVIEW_LIMIT)
    )
    active_maintenances = maintenances.find_by_organization_id(
        organization.id, MaintenanceFilter(status="active", limit=OVERVIEW_LIMIT)
    )
    return {
        "organization": {"name": organization.name, "slug": organization.slug},
        "status": {
            "overall": overall.value,
            "services": [map_public_service(service) for service in public_services],
        },
        "activeIncidents": [map_incident(incident) for incident in active_incidents.items],
        "upcomingMaintenances": [map_maintenance(maintenance) for maintenance in active_maintenances.items],
    }


@router.get("/services")
def list_public_services(
    organization: OrganizationEntity = Depends(get_public_organization),
    services: ServiceRepository = Depends(get_service_repository),
) -> List[Dict[str, Any]]:
    return [map_public_service(service) for service in services.get_public_services(organization.id)]


@router.get("/incidents")
def list_public_incidents(
    status: Optional[str] = Query(None, pattern=INCIDENT_STATUS_FILTER),
    organization: OrganizationEntity = Depends(get_public_organization),
    pagination: Pagination = Depends(get_pagination),
    incidents: IncidentRepository = Depends(get_incident_repository),
) -> Dict[str, Any]:
    filters = IncidentFilter(status=status, page=pagination.page, limit=pagination.limit)
    page = incidents.find_by_organization_id(organization.id, filters)
    data = map_page(page, map_incident)
    for item, incident in zip(data["data"], page.items):
        item["services"] = [
            map_service_summary(service)
            for service in incidents.get_services_for_incident(incident.id)
            if service.is_public
        ]
    return data


@router.get("/maintenances")
def list_public_maintenances(
    status: Optional[str] = Query(None, pattern=MAINTENANCE_STATUS_FILTER),
    upcoming: bool = Query(False),
    organization: OrganizationEntity = Depends(get_public_organization),
    pagination: Pagination = Depends(get_pagination),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> Dict[str, Any]:
    filters = MaintenanceFilter(status=status, upcoming=upcoming, page=pagination.page, limit=pagination.limit)
    return map_page(maintenances.find_by_organization_id(organization.id, filters), map_maintenance)


@router.get("/maintenances/{maintenance_id}")
def get_public_maintenance(
    maintenance: MaintenanceEntity = Depends(_load_public_maintenance),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> Dict[str, Any]:
    services = [s for s in maintenances.get_services_for_maintenance(maintenance.id) if s.is_public]
    return map_maintenance(maintenance, services=services)


@router.get("/maintenances/{maintenance_id}/services")
def list_public_maintenance_services(
    maintenance: MaintenanceEntity = Depends(_load_public_maintenance),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> List[Dict[str, Any]]:
    return [
        map_public_service(service)
        for service in maintenances.get_services_for_maintenance(maintenance.id)
        if service.is_public
    ]


@router.get("/maintenances/{maintenance_id}/updates")
def list_public_maintenance_updates(
    maintenance: MaintenanceEntity = Depends(_load_public_maintenance),
    pagination: Pagination = Depends(get_pagination),
    comments: CommentRepository = Depends(get_comment_repository),
) -> Dict[str, Any]:
    page = comments.page_by_maintenance_id(maintenance.id, pagination.page, pagination.limit, newest_first=True)
    return map_page(page, map_comment)
