from typing import Any, Callable, Dict, Iterable, List, Optional

from app.domain.entities import (
    CommentEntity,
    IncidentEntity,
    IncidentUpdateEntity,
    MaintenanceEntity,
    OrganizationEntity,
    ServiceEntity,
    StatusChange,
    TeamEntity,
    TeamMemberEntity,
    to_iso,
)
from app.repositories.base import Page


def map_page(page: Page, mapper: Callable[[Any], Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "data": [mapper(item) for item in page.items],
        "meta": {
            "total": page.total,
            "page": page.page,
            "limit": page.limit,
            "pages": page.pages,
        },
    }


def map_organization(org: OrganizationEntity) -> Dict[str, Any]:
    return {
        "id": org.id,
        "name": org.name,
        "slug": org.slug,
        "logoUrl": org.logo_url,
        "createdAt": to_iso(org.created_at),
        "updatedAt": to_iso(org.updated_at),
    }


def map_service(service: ServiceEntity) -> Dict[str, Any]:
    return {
        "id": service.id,
        "name": service.name,
        "description": service.description,
        "status": service.status.value,
        "organizationId": service.organization_id,
        "isPublic": service.is_public,
        "createdAt": to_iso(service.created_at),
        "updatedAt": to_iso(service.updated_at),
    }


def map_service_summary(service: ServiceEntity) -> Dict[str, Any]:
    return {"id": service.id, "name": service.name, "status": service.status.value}


def map_public_service(service: ServiceEntity) -> Dict[str, Any]:
    return {
        "id": service.id,
        "name": service.name,
        "description": service.description,
        "status": service.status.value,
        "updatedAt": to_iso(service.updated_at),
    }


def map_status_change(change: StatusChange) -> Dict[str, Any]:
    return {
        "id": change.id,
        "serviceId": change.service_id,
        "status": change.status.value,
        "createdAt": to_iso(change.created_at),
    }


def map_incident_update(update: IncidentUpdateEntity) -> Dict[str, Any]:
    return {
        "id": update.id,
        "incidentId": update.incident_id,
        "message": update.message,
        "status": update.status.value,
        "createdById": update.created_by_id,
        "createdAt": to_iso(update.created_at),
    }


def map_incident(
    incident: IncidentEntity,
    services: Optional[Iterable[ServiceEntity]] = None,
    updates: Optional[Iterable[IncidentUpdateEntity]] = None,
) -> Dict[str, Any]:
    data = {
        "id": incident.id,
        "title": incident.title,
        "description": incident.description,
        "status": incident.status.value,
        "impact": incident.impact.value,
        "organizationId": incident.organization_id,
        "createdById": incident.created_by_id,
        "createdAt": to_iso(incident.created_at),
        "updatedAt": to_iso(incident.updated_at),
        "resolvedAt": to_iso(incident.resolved_at),
    }
    if services is not None:
        data["services"] = [map_service_summary(service) for service in services]
    if updates is not None:
        data["updates"] = [map_incident_update(update) for update in updates]
    return data


def map_maintenance(
    maintenance: MaintenanceEntity,
    services: Optional[Iterable[ServiceEntity]] = None,
) -> Dict[str, Any]:
    data = {
        "id": maintenance.id,
        "title": maintenance.title,
        "description": maintenance.description,
        "status": maintenance.status.value,
        "organizationId": maintenance.organization_id,
        "createdById": maintenance.created_by_id,
        "scheduledStartTime": to_iso(maintenance.scheduled_start_time),
        "scheduledEndTime": to_iso(maintenance.scheduled_end_time),
        "actualStartTime": to_iso(maintenance.actual_start_time),
        "actualEndTime": to_iso(maintenance.actual_end_time),
        "createdAt": to_iso(maintenance.created_at),
        "updatedAt": to_iso(maintenance.updated_at),
    }
    if services is not None:
        data["services"] = [map_service_summary(service) for service in services]
    return data


def map_comment(comment: CommentEntity) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "content": comment.content,
        "userId": comment.user_id,
        "maintenanceId": comment.maintenance_id,
        "createdAt": to_iso(comment.created_at),
        "updatedAt": to_iso(comment.updated_at),
    }


def map_team(team: TeamEntity) -> Dict[str, Any]:
    return {
        "id": team.id,
        "name": team.name,
        "organizationId": team.organization_id,
        "createdAt": to_iso(team.created_at),
        "updatedAt": to_iso(team.updated_at),
    }


def map_team_member(member: TeamMemberEntity) -> Dict[str, Any]:
    return {
        "id": member.id,
        "userId": member.user_id,
        "teamId": member.team_id,
        "role": member.role.value,
        "createdAt": to_iso(member.created_at),
        "updatedAt": to_iso(member.updated_at),
    }


def map_list(items: Iterable[Any], mapper: Callable[[Any], Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [mapper(item) for item in items]
