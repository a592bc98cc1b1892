from typing import Any, Dict

from fastapi import APIRouter, Depends, Response

from app.core.errors import NotFoundError
from app.domain.entities import OrganizationEntity, TeamEntity, TeamMemberEntity
from app.domain.patches import TeamPatch
from app.repositories.team_repository import TeamRepository
from app.routes.deps import (
    Pagination,
    ensure_same_tenant,
    get_current_user_id,
    get_organization,
    get_pagination,
    get_team_repository,
)
from app.schemas.mappers import map_page, map_team, map_team_member
from app.schemas.requests import TeamCreate, TeamMemberCreate, TeamMemberUpdate

router = APIRouter(dependencies=[Depends(get_current_user_id)])


def _load_team(
    team_id: str,
    organization: OrganizationEntity = Depends(get_organization),
    teams: TeamRepository = Depends(get_team_repository),
) -> TeamEntity:
    return ensure_same_tenant(teams.find_by_id(team_id), organization, "Team")


@router.post("/organizations/{organization_id}/teams", status_code=201)
def create_team(
    body: TeamCreate,
    organization: OrganizationEntity = Depends(get_organization),
    teams: TeamRepository = Depends(get_team_repository),
) -> Dict[str, Any]:
    team = TeamEntity.create(name=body.name, organization_id=organization.id)
    return map_team(teams.create(team))


@router.get("/organizations/{organization_id}/teams")
def list_teams(
    organization: OrganizationEntity = Depends(get_organization),
    pagination: Pagination = Depends(get_pagination),
    teams: TeamRepository = Depends(get_team_repository),
) -> Dict[str, Any]:
    return map_page(teams.find_by_organization_id(organization.id, pagination.page, pagination.limit), map_team)


@router.get("/organizations/{organization_id}/teams/{team_id}")
def get_team(team: TeamEntity = Depends(_load_team)) -> Dict[str, Any]:
    return map_team(team)


@router.patch("/organizations/{organization_id}/teams/{team_id}")
def update_team(
    patch: TeamPatch,
    team: TeamEntity = Depends(_load_team),
    teams: TeamRepository = Depends(get_team_repository),
) -> Dict[str, Any]:
    team.apply(patch)
    return map_team(teams.update(team))


@router.delete("/organizations/{organization_id}/teams/{team_id}", status_code=204)
def delete_team(
    team: TeamEntity = Depends(_load_team),
    teams: TeamRepository = Depends(get_team_repository),
) -> Response:
    teams.delete(team.id)
    return Response(status_code=204)


@router.get("/organizations/{organization_id}/teams/{team_id}/members")
def list_team_members(
    team: TeamEntity = Depends(_load_team),
    pagination: Pagination = Depends(get_pagination),
    teams: TeamRepository = Depends(get_team_repository),
) -> Dict[str, Any]:
    return map_page(teams.find_members(team.id, pagination.page, pagination.limit), map_team_member)


@router.post("/organizations/{organization_id}/teams/{team_id}/members", status_code=201)
def add_team_member(
    body: TeamMemberCreate,
    team: TeamEntity = Depends(_load_team),
    teams: TeamRepository = Depends(get_team_repository),
) -> Dict[str, Any]:
    member = TeamMemberEntity.create(user_id=body.user_id, team_id=team.id, role=body.role)
    return map_team_member(teams.add_member(member))


@router.patch("/organizations/{organization_id}/teams/{team_id}/members/{user_id}")
def update_team_member(
    user_id: str,
    body: TeamMemberUpdate,
    team: TeamEntity = Depends(_load_team),
    teams: TeamRepository = Depends(get_team_repository),
) -> Dict[str, Any]:
    member = teams.find_member(team.id, user_id)
    if member is None:
        raise NotFoundError("Team member", user_id)
    member.update_role(body.role)
    return map_team_member(teams.update_member(member))


@router.delete("/organizations/{organization_id}/teams/{team_id}/members/{user_id}", status_code=204)
def remove_team_member(
    user_id: str,
    team: TeamEntity = Depends(_load_team),
    teams: TeamRepository = Depends(get_team_repository),
) -> Response:
    teams.remove_member(team.id, user_id)
    return Response(status_code=204)
