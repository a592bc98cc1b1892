from typing import Optional

from sqlalchemy.exc import IntegrityError

from app.core.errors import ConflictError, NotFoundError
from app.domain.entities import TeamEntity, TeamMemberEntity, ensure_utc
from app.domain.status import TeamRole
from app.models.models import Team, TeamMember
from app.repositories.base import BaseRepository, Page, paginate


def team_to_entity(row: Team) -> TeamEntity:
    return TeamEntity(
        id=row.id,
        name=row.name,
        organization_id=row.organization_id,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def member_to_entity(row: TeamMember) -> TeamMemberEntity:
    return TeamMemberEntity(
        id=row.id,
        user_id=row.user_id,
        team_id=row.team_id,
        role=TeamRole(row.role),
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


class TeamRepository(BaseRepository):

    def _get_row(self, team_id: str) -> Team:
        row = self.db.query(Team).filter(Team.id == team_id).first()
        if not row:
            raise NotFoundError("Team", team_id)
        return row

    def _get_member_row(self, team_id: str, user_id: str) -> TeamMember:
        row = (
            self.db.query(TeamMember)
            .filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
            .first()
        )
        if not row:
            raise NotFoundError("Team member", user_id)
        return row

    def create(self, team: TeamEntity) -> TeamEntity:
        self.db.add(Team(
            id=team.id,
            name=team.name,
            organization_id=team.organization_id,
            created_at=team.created_at,
            updated_at=team.updated_at,
        ))
        self._commit()
        return team

    def find_by_id(self, team_id: str) -> Optional[TeamEntity]:
        row = self.db.query(Team).filter(Team.id == team_id).first()
        return team_to_entity(row) if row else None

    def find_by_organization_id(
        self,
        organization_id: str,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page[TeamEntity]:
        query = (
            self.db.query(Team)
            .filter(Team.organization_id == organization_id)
            .order_by(Team.created_at.asc())
        )
        return paginate(query, page, limit, team_to_entity)

    def update(self, team: TeamEntity) -> TeamEntity:
        row = self._get_row(team.id)
        row.name = team.name
        row.updated_at = team.updated_at
        self._commit()
        return team

    def delete(self, team_id: str) -> None:
        row = self._get_row(team_id)
        self.db.delete(row)
        self._commit()

    def add_member(self, member: TeamMemberEntity) -> TeamMemberEntity:
        if self.find_member(member.team_id, member.user_id):
            raise ConflictError("User is already a member of this team")
        self.db.add(TeamMember(
            id=member.id,
            user_id=member.user_id,
            team_id=member.team_id,
            role=member.role.value,
            created_at=member.created_at,
            updated_at=member.updated_at,
        ))
        try:
            self._commit()
        except IntegrityError:
            # lost a race with a concurrent add of the same user
            raise ConflictError("User is already a member of this team")
        return member

    def find_member(self, team_id: str, user_id: str) -> Optional[TeamMemberEntity]:
        row = (
            self.db.query(TeamMember)
            .filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
            .first()
        )
        return member_to_entity(row) if row else None

    def find_members(self, team_id: str, page: int = 1, limit: Optional[int] = None) -> Page[TeamMemberEntity]:
        query = (
            self.db.query(TeamMember)
            .filter(TeamMember.team_id == team_id)
            .order_by(TeamMember.created_at.asc())
        )
        return paginate(query, page, limit, member_to_entity)

    def update_member(self, member: TeamMemberEntity) -> TeamMemberEntity:
        row = self._get_member_row(member.team_id, member.user_id)
        row.role = member.role.value
        row.updated_at = member.updated_at
        self._commit()
        return member

    def remove_member(self, team_id: str, user_id: str) -> None:
        row = self._get_member_row(team_id, user_id)
        self.db.delete(row)
        self._commit()
