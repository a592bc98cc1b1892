from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response

from app.core.errors import ForbiddenError, NotFoundError
from app.domain.entities import CommentEntity, MaintenanceEntity, OrganizationEntity
from app.domain.patches import MaintenancePatch
from app.repositories.comment_repository import CommentRepository
from app.repositories.maintenance_repository import MaintenanceFilter, MaintenanceRepository
from app.routes.deps import (
    Pagination,
    ensure_same_tenant,
    get_comment_repository,
    get_current_user_id,
    get_maintenance_repository,
    get_maintenance_workflow,
    get_organization,
    get_pagination,
)
from app.schemas.mappers import map_comment, map_maintenance, map_page, map_service_summary
from app.schemas.requests import CommentCreate, MaintenanceCreate, MaintenanceStatusUpdate, ServiceLinks
from app.services.maintenance_workflow import MaintenanceWorkflow

router = APIRouter(dependencies=[Depends(get_current_user_id)])

MAINTENANCE_STATUS_FILTER = r"^(active|scheduled|in_progress|completed)$"


def load_maintenance(
    maintenance_id: str,
    organization: OrganizationEntity = Depends(get_organization),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> MaintenanceEntity:
    return ensure_same_tenant(maintenances.find_by_id(maintenance_id), organization, "Maintenance")


def _load_own_comment(
    comment_id: str,
    user_id: str = Depends(get_current_user_id),
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    comments: CommentRepository = Depends(get_comment_repository),
) -> CommentEntity:
    comment = comments.find_by_id(comment_id)
    if comment is None or comment.maintenance_id != maintenance.id:
        raise NotFoundError("Comment", comment_id)
    if comment.user_id != user_id:
        raise ForbiddenError("Only the author can change this comment")
    return comment


@router.post("/organizations/{organization_id}/maintenances", status_code=201)
def create_maintenance(
    body: MaintenanceCreate,
    user_id: str = Depends(get_current_user_id),
    organization: OrganizationEntity = Depends(get_organization),
    workflow: MaintenanceWorkflow = Depends(get_maintenance_workflow),
) -> Dict[str, Any]:
    maintenance = workflow.create(
        organization_id=organization.id,
        title=body.title,
        scheduled_start_time=body.scheduled_start_time,
        scheduled_end_time=body.scheduled_end_time,
        description=body.description,
        service_ids=body.service_ids,
        user_id=user_id,
    )
    return map_maintenance(maintenance, services=workflow.maintenances.get_services_for_maintenance(maintenance.id))


@router.get("/organizations/{organization_id}/maintenances")
def list_maintenances(
    status: Optional[str] = Query(None, pattern=MAINTENANCE_STATUS_FILTER),
    upcoming: bool = Query(False),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    organization: OrganizationEntity = Depends(get_organization),
    pagination: Pagination = Depends(get_pagination),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> Dict[str, Any]:
    filters = MaintenanceFilter(
        status=status,
        upcoming=upcoming,
        start_date=start_date,
        end_date=end_date,
        page=pagination.page,
        limit=pagination.limit,
    )
    return map_page(maintenances.find_by_organization_id(organization.id, filters), map_maintenance)


@router.get("/organizations/{organization_id}/maintenances/{maintenance_id}")
def get_maintenance(
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> Dict[str, Any]:
    return map_maintenance(maintenance, services=maintenances.get_services_for_maintenance(maintenance.id))


@router.patch("/organizations/{organization_id}/maintenances/{maintenance_id}")
def update_maintenance(
    patch: MaintenancePatch,
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    workflow: MaintenanceWorkflow = Depends(get_maintenance_workflow),
) -> Dict[str, Any]:
    workflow.edit(maintenance, patch)
    return map_maintenance(maintenance, services=workflow.maintenances.get_services_for_maintenance(maintenance.id))


@router.post("/organizations/{organization_id}/maintenances/{maintenance_id}/status")
def update_maintenance_status(
    body: MaintenanceStatusUpdate,
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    workflow: MaintenanceWorkflow = Depends(get_maintenance_workflow),
) -> Dict[str, Any]:
    workflow.change_status(
        maintenance,
        body.status,
        actual_start_time=body.actual_start_time,
        actual_end_time=body.actual_end_time,
    )
    return map_maintenance(maintenance)


@router.get("/organizations/{organization_id}/maintenances/{maintenance_id}/services")
def list_maintenance_services(
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    maintenances: MaintenanceRepository = Depends(get_maintenance_repository),
) -> List[Dict[str, Any]]:
    return [map_service_summary(service) for service in maintenances.get_services_for_maintenance(maintenance.id)]


@router.post("/organizations/{organization_id}/maintenances/{maintenance_id}/services")
def manage_maintenance_services(
    body: ServiceLinks,
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    workflow: MaintenanceWorkflow = Depends(get_maintenance_workflow),
) -> Dict[str, Any]:
    if body.action == "add":
        services = workflow.attach_services(maintenance, body.service_ids)
    else:
        services = workflow.detach_services(maintenance, body.service_ids)
    return map_maintenance(maintenance, services=services)


@router.delete("/organizations/{organization_id}/maintenances/{maintenance_id}", status_code=204)
def delete_maintenance(
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    workflow: MaintenanceWorkflow = Depends(get_maintenance_workflow),
) -> Response:
    workflow.delete(maintenance)
    return Response(status_code=204)


@router.get("/organizations/{organization_id}/maintenances/{maintenance_id}/comments")
def list_comments(
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    pagination: Pagination = Depends(get_pagination),
    comments: CommentRepository = Depends(get_comment_repository),
) -> Dict[str, Any]:
    page = comments.page_by_maintenance_id(maintenance.id, pagination.page, pagination.limit)
    return map_page(page, map_comment)


@router.post("/organizations/{organization_id}/maintenances/{maintenance_id}/comments", status_code=201)
def create_comment(
    body: CommentCreate,
    user_id: str = Depends(get_current_user_id),
    maintenance: MaintenanceEntity = Depends(load_maintenance),
    comments: CommentRepository = Depends(get_comment_repository),
) -> Dict[str, Any]:
    comment = CommentEntity.create(content=body.content, user_id=user_id, maintenance_id=maintenance.id)
    return map_comment(comments.create(comment, maintenance))


@router.patch("/organizations/{organization_id}/maintenances/{maintenance_id}/comments/{comment_id}")
def update_comment(
    body: CommentCreate,
    comment: CommentEntity = Depends(_load_own_comment),
    comments: CommentRepository = Depends(get_comment_repository),
) -> Dict[str, Any]:
    comment.update(body.content)
    return map_comment(comments.update(comment))


@router.delete(
    "/organizations/{organization_id}/maintenances/{maintenance_id}/comments/{comment_id}",
    status_code=204,
)
def delete_comment(
    comment: CommentEntity = Depends(_load_own_comment),
    comments: CommentRepository = Depends(get_comment_repository),
) -> Response:
    comments.delete(comment.id)
    return Response(status_code=204)
