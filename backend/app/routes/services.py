from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Response

from app.domain.entities import OrganizationEntity, ServiceEntity
from app.domain.patches import ServicePatch
from app.repositories.service_repository import ServiceRepository
from app.routes.deps import (
    Pagination,
    ensure_same_tenant,
    get_current_user_id,
    get_organization,
    get_pagination,
    get_service_repository,
)
from app.schemas.mappers import map_page, map_service, map_status_change
from app.schemas.requests import ServiceCreate, ServiceStatusUpdate

router = APIRouter(dependencies=[Depends(get_current_user_id)])


def _load_service(
    service_id: str,
    organization: OrganizationEntity = Depends(get_organization),
    services: ServiceRepository = Depends(get_service_repository),
) -> ServiceEntity:
    return ensure_same_tenant(services.find_by_id(service_id), organization, "Service")


@router.post("/organizations/{organization_id}/services", status_code=201)
def create_service(
    body: ServiceCreate,
    organization: OrganizationEntity = Depends(get_organization),
    services: ServiceRepository = Depends(get_service_repository),
) -> Dict[str, Any]:
    service = ServiceEntity.create(
        name=body.name,
        organization_id=organization.id,
        description=body.description,
        status=body.status,
        is_public=body.is_public,
    )
    return map_service(services.create(service))


@router.get("/organizations/{organization_id}/services")
def list_services(
    organization: OrganizationEntity = Depends(get_organization),
    pagination: Pagination = Depends(get_pagination),
    services: ServiceRepository = Depends(get_service_repository),
) -> Dict[str, Any]:
    page = services.find_by_organization_id(organization.id, pagination.page, pagination.limit)
    return map_page(page, map_service)


@router.get("/organizations/{organization_id}/services/{service_id}")
def get_service(
    include_history: bool = Query(False, alias="includeHistory"),
    service: ServiceEntity = Depends(_load_service),
    services: ServiceRepository = Depends(get_service_repository),
) -> Dict[str, Any]:
    data = map_service(service)
    if include_history:
        history = services.get_status_history(service.id)
        data["statusHistory"] = [map_status_change(change) for change in history.items]
    return data


@router.patch("/organizations/{organization_id}/services/{service_id}")
def update_service(
    patch: ServicePatch,
    service: ServiceEntity = Depends(_load_service),
    services: ServiceRepository = Depends(get_service_repository),
) -> Dict[str, Any]:
    service.apply(patch)
    return map_service(services.update(service))


@router.post("/organizations/{organization_id}/services/{service_id}/status")
def update_service_status(
    body: ServiceStatusUpdate,
    service: ServiceEntity = Depends(_load_service),
    services: ServiceRepository = Depends(get_service_repository),
) -> Dict[str, Any]:
    return map_service(services.update_status(service.id, body.status))


@router.get("/organizations/{organization_id}/services/{service_id}/history")
def get_service_history(
    service: ServiceEntity = Depends(_load_service),
    pagination: Pagination = Depends(get_pagination),
    services: ServiceRepository = Depends(get_service_repository),
) -> Dict[str, Any]:
    page = services.get_status_history(service.id, pagination.page, pagination.limit)
    return map_page(page, map_status_change)


@router.delete("/organizations/{organization_id}/services/{service_id}", status_code=204)
def delete_service(
    service: ServiceEntity = Depends(_load_service),
    services: ServiceRepository = Depends(get_service_repository),
) -> Response:
    services.delete(service.id)
    return Response(status_code=204)
