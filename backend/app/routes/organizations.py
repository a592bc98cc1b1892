from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from app.domain.entities import OrganizationEntity, ServiceEntity
from app.domain.patches import OrganizationPatch
from app.repositories.organization_repository import OrganizationRepository
from app.repositories.service_repository import ServiceRepository
from app.routes.deps import (
    Pagination,
    get_current_user_id,
    get_organization,
    get_organization_repository,
    get_pagination,
    get_service_repository,
)
from app.schemas.mappers import map_organization, map_page, map_service_summary
from app.schemas.requests import OrganizationCreate

router = APIRouter(dependencies=[Depends(get_current_user_id)])


@router.post("/organizations", status_code=201)
def create_organization(
    body: OrganizationCreate,
    organizations: OrganizationRepository = Depends(get_organization_repository),
) -> Dict[str, Any]:
    organization = OrganizationEntity.create(name=body.name, slug=body.slug, logo_url=body.logo_url)
    return map_organization(organizations.create(organization))


@router.get("/organizations")
def list_organizations(
    pagination: Pagination = Depends(get_pagination),
    organizations: OrganizationRepository = Depends(get_organization_repository),
) -> Dict[str, Any]:
    page = organizations.find_all(pagination.page, pagination.limit)
    return map_page(page, map_organization)


@router.get("/organizations/{organization_id}")
def get_organization_detail(organization: OrganizationEntity = Depends(get_organization)) -> Dict[str, Any]:
    return map_organization(organization)


@router.patch("/organizations/{organization_id}")
def update_organization(
    patch: OrganizationPatch,
    organization: OrganizationEntity = Depends(get_organization),
    organizations: OrganizationRepository = Depends(get_organization_repository),
) -> Dict[str, Any]:
    organization.apply(patch)
    return map_organization(organizations.update(organization))


@router.delete("/organizations/{organization_id}", status_code=204)
def delete_organization(
    organization: OrganizationEntity = Depends(get_organization),
    organizations: OrganizationRepository = Depends(get_organization_repository),
) -> Response:
    organizations.delete(organization.id)
    return Response(status_code=204)


@router.get("/organizations/{organization_id}/status")
def get_organization_status(
    organization: OrganizationEntity = Depends(get_organization),
    services: ServiceRepository = Depends(get_service_repository),
) -> Dict[str, Any]:
    """
    Overall status of the organization's public services: the most severe
    member, operational when there are none.
    """
    public_services = services.get_public_services(organization.id)
    overall = ServiceEntity.get_highest_severity_status(service.status for service in public_services)
    return {
        "organization": {"id": organization.id, "name": organization.name, "slug": organization.slug},
        "overallStatus": overall.value,
        "services": [map_service_summary(service) for service in public_services],
    }
