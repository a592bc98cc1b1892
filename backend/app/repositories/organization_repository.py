from typing import Optional

from app.core.errors import ConflictError, NotFoundError
from app.domain.entities import OrganizationEntity, ensure_utc
from app.models.models import Organization
from app.repositories.base import BaseRepository, Page, paginate


def organization_to_entity(row: Organization) -> OrganizationEntity:
    return OrganizationEntity(
        id=row.id,
        name=row.name,
        slug=row.slug,
        logo_url=row.logo_url,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


class OrganizationRepository(BaseRepository):

    def _get_row(self, organization_id: str) -> Organization:
        row = self.db.query(Organization).filter(Organization.id == organization_id).first()
        if not row:
            raise NotFoundError("Organization", organization_id)
        return row

    def _ensure_slug_free(self, slug: str, exclude_id: Optional[str] = None) -> None:
        query = self.db.query(Organization.id).filter(Organization.slug == slug)
        if exclude_id:
            query = query.filter(Organization.id != exclude_id)
        if query.first():
            raise ConflictError("Organization slug already in use")

    def create(self, organization: OrganizationEntity) -> OrganizationEntity:
        self._ensure_slug_free(organization.slug)
        row = Organization(
            id=organization.id,
            name=organization.name,
            slug=organization.slug,
            logo_url=organization.logo_url,
            created_at=organization.created_at,
            updated_at=organization.updated_at,
        )
        self.db.add(row)
        self._commit()
        return organization

    def find_by_id(self, organization_id: str) -> Optional[OrganizationEntity]:
        row = self.db.query(Organization).filter(Organization.id == organization_id).first()
        return organization_to_entity(row) if row else None

    def find_by_slug(self, slug: str) -> Optional[OrganizationEntity]:
        row = self.db.query(Organization).filter(Organization.slug == slug).first()
        return organization_to_entity(row) if row else None

    def find_all(self, page: int = 1, limit: Optional[int] = None) -> Page[OrganizationEntity]:
        query = self.db.query(Organization).order_by(Organization.name.asc())
        return paginate(query, page, limit, organization_to_entity)

    def update(self, organization: OrganizationEntity) -> OrganizationEntity:
        row = self._get_row(organization.id)
        if organization.slug != row.slug:
            self._ensure_slug_free(organization.slug, exclude_id=organization.id)
        row.name = organization.name
        row.slug = organization.slug
        row.logo_url = organization.logo_url
        row.updated_at = organization.updated_at
        self._commit()
        return organization

    def delete(self, organization_id: str) -> None:
        row = self._get_row(organization_id)
        self.db.delete(row)
        self._commit()
