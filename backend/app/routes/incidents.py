from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response

from app.domain.entities import IncidentEntity, OrganizationEntity
from app.domain.patches import IncidentPatch
from app.repositories.incident_repository import IncidentFilter, IncidentRepository
from app.routes.deps import (
    Pagination,
    ensure_same_tenant,
    get_current_user_id,
    get_incident_repository,
    get_incident_workflow,
    get_organization,
    get_pagination,
)
from app.schemas.mappers import map_incident, map_incident_update, map_page
from app.schemas.requests import IncidentCreate, IncidentStatusUpdate, ServiceLinks
from app.services.incident_workflow import IncidentWorkflow

router = APIRouter(dependencies=[Depends(get_current_user_id)])

INCIDENT_STATUS_FILTER = r"^(active|investigating|identified|monitoring|resolved)$"


def _load_incident(
    incident_id: str,
    organization: OrganizationEntity = Depends(get_organization),
    incidents: IncidentRepository = Depends(get_incident_repository),
) -> IncidentEntity:
    return ensure_same_tenant(incidents.find_by_id(incident_id), organization, "Incident")


def _detail(incidents: IncidentRepository, incident: IncidentEntity) -> Dict[str, Any]:
    return map_incident(
        incident,
        services=incidents.get_services_for_incident(incident.id),
        updates=incidents.get_updates(incident.id),
    )


@router.post("/organizations/{organization_id}/incidents", status_code=201)
def create_incident(
    body: IncidentCreate,
    user_id: str = Depends(get_current_user_id),
    organization: OrganizationEntity = Depends(get_organization),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
) -> Dict[str, Any]:
    incident = workflow.create(
        organization_id=organization.id,
        title=body.title,
        impact=body.impact,
        description=body.description,
        status=body.status,
        service_ids=body.service_ids,
        initial_update=body.initial_update,
        user_id=user_id,
    )
    return _detail(workflow.incidents, incident)


@router.get("/organizations/{organization_id}/incidents")
def list_incidents(
    status: Optional[str] = Query(None, pattern=INCIDENT_STATUS_FILTER),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    organization: OrganizationEntity = Depends(get_organization),
    pagination: Pagination = Depends(get_pagination),
    incidents: IncidentRepository = Depends(get_incident_repository),
) -> Dict[str, Any]:
    filters = IncidentFilter(
        status=status,
        start_date=start_date,
        end_date=end_date,
        page=pagination.page,
        limit=pagination.limit,
    )
    return map_page(incidents.find_by_organization_id(organization.id, filters), map_incident)


@router.get("/organizations/{organization_id}/incidents/{incident_id}")
def get_incident(
    incident: IncidentEntity = Depends(_load_incident),
    incidents: IncidentRepository = Depends(get_incident_repository),
) -> Dict[str, Any]:
    return _detail(incidents, incident)


@router.patch("/organizations/{organization_id}/incidents/{incident_id}")
def update_incident(
    patch: IncidentPatch,
    incident: IncidentEntity = Depends(_load_incident),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
) -> Dict[str, Any]:
    workflow.edit(incident, patch)
    return _detail(workflow.incidents, incident)


@router.post("/organizations/{organization_id}/incidents/{incident_id}/status")
def update_incident_status(
    body: IncidentStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    incident: IncidentEntity = Depends(_load_incident),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
) -> Dict[str, Any]:
    update = workflow.change_status(incident, body.status, message=body.message, user_id=user_id)
    data = _detail(workflow.incidents, incident)
    data["latestUpdate"] = map_incident_update(update)
    return data


@router.post("/organizations/{organization_id}/incidents/{incident_id}/services")
def manage_incident_services(
    body: ServiceLinks,
    incident: IncidentEntity = Depends(_load_incident),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
) -> Dict[str, Any]:
    if body.action == "add":
        services = workflow.attach_services(incident, body.service_ids)
    else:
        services = workflow.detach_services(incident, body.service_ids)
    return map_incident(incident, services=services)


@router.get("/organizations/{organization_id}/incidents/{incident_id}/updates")
def list_incident_updates(
    incident: IncidentEntity = Depends(_load_incident),
    incidents: IncidentRepository = Depends(get_incident_repository),
) -> List[Dict[str, Any]]:
    return [map_incident_update(update) for update in incidents.get_updates(incident.id)]


@router.delete("/organizations/{organization_id}/incidents/{incident_id}", status_code=204)
def delete_incident(
    incident: IncidentEntity = Depends(_load_incident),
    workflow: IncidentWorkflow = Depends(get_incident_workflow),
) -> Response:
    workflow.delete(incident)
    return Response(status_code=204)
