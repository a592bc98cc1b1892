from enum import Enum
from typing import Any, Dict

from app.domain.entities import (
    CommentEntity,
    IncidentEntity,
    MaintenanceEntity,
    ServiceEntity,
    to_iso,
)


class EventType(str, Enum):
    SERVICE_STATUS_CHANGE = "service:status:change"
    INCIDENT_CREATE = "incident:create"
    INCIDENT_UPDATE = "incident:update"
    MAINTENANCE_CREATE = "maintenance:create"
    MAINTENANCE_UPDATE = "maintenance:update"
    MAINTENANCE_STATUS_CHANGE = "maintenance:status:change"
    COMMENT_CREATE = "comment:create"


class ControlEvent(str, Enum):
    ROOM_JOINED = "room:joined"
    ROOM_LEFT = "room:left"
    ERROR = "error"


def service_status_changed(service: ServiceEntity) -> Dict[str, Any]:
    return {
        "serviceId": service.id,
        "status": service.status.value,
        "name": service.name,
        "updatedAt": to_iso(service.updated_at),
    }


def incident_created(incident: IncidentEntity) -> Dict[str, Any]:
    return {
        "incidentId": incident.id,
        "title": incident.title,
        "status": incident.status.value,
        "impact": incident.impact.value,
        # dashboards built against the older payload read "severity"
        "severity": incident.impact.value,
        "createdAt": to_iso(incident.created_at),
    }


def incident_updated(incident: IncidentEntity) -> Dict[str, Any]:
    return {
        "incidentId": incident.id,
        "title": incident.title,
        "status": incident.status.value,
        "impact": incident.impact.value,
        "severity": incident.impact.value,
        "updatedAt": to_iso(incident.updated_at),
        "resolvedAt": to_iso(incident.resolved_at),
    }


def maintenance_created(maintenance: MaintenanceEntity) -> Dict[str, Any]:
    return {
        "maintenanceId": maintenance.id,
        "title": maintenance.title,
        "status": maintenance.status.value,
        "scheduledStartTime": to_iso(maintenance.scheduled_start_time),
        "scheduledEndTime": to_iso(maintenance.scheduled_end_time),
        "createdAt": to_iso(maintenance.created_at),
    }


def maintenance_updated(maintenance: MaintenanceEntity) -> Dict[str, Any]:
    return {
        "maintenanceId": maintenance.id,
        "title": maintenance.title,
        "status": maintenance.status.value,
        "scheduledStartTime": to_iso(maintenance.scheduled_start_time),
        "scheduledEndTime": to_iso(maintenance.scheduled_end_time),
        "actualStartTime": to_iso(maintenance.actual_start_time),
        "actualEndTime": to_iso(maintenance.actual_end_time),
        "updatedAt": to_iso(maintenance.updated_at),
    }


def maintenance_status_changed(maintenance: MaintenanceEntity) -> Dict[str, Any]:
    return {
        "maintenanceId": maintenance.id,
        "status": maintenance.status.value,
        "title": maintenance.title,
        "actualStartTime": to_iso(maintenance.actual_start_time),
        "actualEndTime": to_iso(maintenance.actual_end_time),
        "updatedAt": to_iso(maintenance.updated_at),
    }


def comment_created(comment: CommentEntity, maintenance: MaintenanceEntity) -> Dict[str, Any]:
    return {
        "commentId": comment.id,
        "content": comment.content,
        "entityId": maintenance.id,
        "entityType": "maintenance",
        "entityTitle": maintenance.title,
        "createdAt": to_iso(comment.created_at),
    }
