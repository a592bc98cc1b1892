from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, Header, Query, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ForbiddenError, NotFoundError, UnauthorizedError
from app.database.db import get_db
from app.domain.entities import OrganizationEntity
from app.repositories.comment_repository import CommentRepository
from app.repositories.incident_repository import IncidentRepository
from app.repositories.maintenance_repository import MaintenanceRepository
from app.repositories.organization_repository import OrganizationRepository
from app.repositories.service_repository import ServiceRepository
from app.repositories.team_repository import TeamRepository
from app.services.broadcaster import Broadcaster
from app.services.incident_workflow import IncidentWorkflow
from app.services.maintenance_workflow import MaintenanceWorkflow


def get_broadcaster(request: Request) -> Optional[Broadcaster]:
    return getattr(request.app.state, "broadcaster", None)


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    # Identity comes from the fronting auth provider as an opaque header
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError()
    return x_user_id.strip()


@dataclass
class Pagination:
    page: int
    limit: int


def get_pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
) -> Pagination:
    return Pagination(page=page, limit=limit)


def get_organization_repository(
    db: Session = Depends(get_db),
    broadcaster: Optional[Broadcaster] = Depends(get_broadcaster),
) -> OrganizationRepository:
    return OrganizationRepository(db, broadcaster)


def get_service_repository(
    db: Session = Depends(get_db),
    broadcaster: Optional[Broadcaster] = Depends(get_broadcaster),
) -> ServiceRepository:
    return ServiceRepository(db, broadcaster)


def get_incident_repository(
    db: Session = Depends(get_db),
    broadcaster: Optional[Broadcaster] = Depends(get_broadcaster),
) -> IncidentRepository:
    return IncidentRepository(db, broadcaster)


def get_maintenance_repository(
    db: Session = Depends(get_db),
    broadcaster: Optional[Broadcaster] = Depends(get_broadcaster),
) -> MaintenanceRepository:
    return MaintenanceRepository(db, broadcaster)


def get_comment_repository(
    db: Session = Depends(get_db),
    broadcaster: Optional[Broadcaster] = Depends(get_broadcaster),
) -> CommentRepository:
    return CommentRepository(db, broadcaster)


def get_team_repository(
    db: Session = Depends(get_db),
    broadcaster: Optional[Broadcaster] = Depends(get_broadcaster),
) -> TeamRepository:
    return TeamRepository(db, broadcaster)


def get_incident_workflow(
    incidents: IncidentRepository = Depends(get_incident_repository),
    services: ServiceRepository = Depends(get_service_repository),
) -> IncidentWorkflow:
    return IncidentWorkflow(incidents, services)


def get_maintenance_workflow(
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
    services: ServiceRepository = Depends(get_service_repository),
) -> MaintenanceWorkflow:
    return MaintenanceWorkflow(maintenances, services)


def get_organization(
    organization_id: str,
    organizations: OrganizationRepository = Depends(get_organization_repository),
) -> OrganizationEntity:
    organization = organizations.find_by_id(organization_id)
    if not organization:
        raise NotFoundError("Organization", organization_id)
    return organization


def get_public_organization(
    slug: str,
    organizations: OrganizationRepository = Depends(get_organization_repository),
) -> OrganizationEntity:
    organization = organizations.find_by_slug(slug)
    if not organization:
        raise NotFoundError("Organization", slug)
    return organization


def ensure_same_tenant(entity: Any, organization: OrganizationEntity, resource: str) -> Any:
    """
    Returns ``entity`` when it exists and belongs to ``organization``.
    A missing entity is a 404, one owned by another organization a 403.
    """
    if entity is None:
        raise NotFoundError(resource)
    if entity.organization_id != organization.id:
        raise ForbiddenError(f"{resource} does not belong to the organization")
    return entity
