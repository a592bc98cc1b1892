import logging
from typing import Iterable, List, Optional, Union

from app.core.errors import NotFoundError
from app.domain.entities import ServiceEntity, StatusChange, ensure_utc, new_id
from app.domain.status import ServiceStatus
from app.models.models import Service, StatusHistory
from app.repositories.base import BaseRepository, Page, paginate
from app.services import events
from app.services.events import EventType

logger = logging.getLogger(__name__)


def service_to_entity(row: Service) -> ServiceEntity:
    return ServiceEntity(
        id=row.id,
        name=row.name,
        description=row.description,
        status=ServiceStatus(row.status),
        organization_id=row.organization_id,
        is_public=bool(row.is_public),
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def _history_to_change(row: StatusHistory) -> StatusChange:
    return StatusChange(
        id=row.id,
        service_id=row.service_id,
        status=ServiceStatus(row.status),
        created_at=ensure_utc(row.created_at),
    )


class ServiceRepository(BaseRepository):
    """
    Persistence for services and their status history.

    ``update_status`` is the only way a service's status changes after
    creation: it writes the new status and a history row in one commit and
    then publishes ``service:status:change``. Asking for the status the
    service already has writes and publishes nothing.
    """

    def _get_row(self, service_id: str) -> Service:
        row = self.db.query(Service).filter(Service.id == service_id).first()
        if not row:
            raise NotFoundError("Service", service_id)
        return row

    def create(self, service: ServiceEntity) -> ServiceEntity:
        self.db.add(Service(
            id=service.id,
            name=service.name,
            description=service.description,
            status=service.status.value,
            organization_id=service.organization_id,
            is_public=service.is_public,
            created_at=service.created_at,
            updated_at=service.updated_at,
        ))
        # Flush first so the history row's foreign key resolves on every backend
        self.db.flush()
        self.db.add(StatusHistory(
            id=new_id(),
            service_id=service.id,
            status=service.status.value,
            created_at=service.created_at,
        ))
        self._commit()
        return service

    def find_by_id(self, service_id: str) -> Optional[ServiceEntity]:
        row = self.db.query(Service).filter(Service.id == service_id).first()
        return service_to_entity(row) if row else None

    def find_by_organization_id(
        self,
        organization_id: str,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page[ServiceEntity]:
        query = (
            self.db.query(Service)
            .filter(Service.organization_id == organization_id)
            .order_by(Service.name.asc())
        )
        return paginate(query, page, limit, service_to_entity)

    def get_public_services(self, organization_id: str) -> List[ServiceEntity]:
        rows = (
            self.db.query(Service)
            .filter(Service.organization_id == organization_id, Service.is_public.is_(True))
            .order_by(Service.name.asc())
            .all()
        )
        return [service_to_entity(row) for row in rows]

    def get_services_by_ids(self, service_ids: Iterable[str]) -> List[ServiceEntity]:
        service_ids = list(dict.fromkeys(service_ids))
        if not service_ids:
            return []
        rows = self.db.query(Service).filter(Service.id.in_(service_ids)).all()
        return [service_to_entity(row) for row in rows]

    def update(self, service: ServiceEntity) -> ServiceEntity:
        """Persists name, description and visibility. Status is not written here."""
        row = self._get_row(service.id)
        row.name = service.name
        row.description = service.description
        row.is_public = service.is_public
        row.updated_at = service.updated_at
        self._commit()
        return service

    def delete(self, service_id: str) -> None:
        row = self._get_row(service_id)
        self.db.delete(row)
        self._commit()

    def update_status(self, service_id: str, status: Union[ServiceStatus, str]) -> ServiceEntity:
        row = self._get_row(service_id)
        service = service_to_entity(row)
        if not service.update_status(status):
            logger.debug(
                "service status unchanged, nothing written",
                extra={"service_id": service_id, "status": service.status.value},
            )
            return service

        change = service.create_status_change()
        row.status = service.status.value
        row.updated_at = service.updated_at
        self.db.add(StatusHistory(
            id=new_id(),
            service_id=service.id,
            status=change.status.value,
            created_at=change.created_at,
        ))
        self._commit()
        logger.info(
            "service status changed",
            extra={"service_id": service_id, "status": service.status.value},
        )

        self._publish(
            service.organization_id,
            EventType.SERVICE_STATUS_CHANGE,
            events.service_status_changed(service),
        )
        return service

    def get_status_history(
        self,
        service_id: str,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Page[StatusChange]:
        query = (
            self.db.query(StatusHistory)
            .filter(StatusHistory.service_id == service_id)
            .order_by(StatusHistory.created_at.desc())
        )
        return paginate(query, page, limit, _history_to_change)
