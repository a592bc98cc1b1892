import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from app.core.errors import NotFoundError
from app.domain.entities import IncidentEntity, IncidentUpdateEntity, ServiceEntity, coerce_enum, ensure_utc, new_id
from app.domain.status import IncidentStatus, ServiceStatus
from app.models.incident import Incident, IncidentUpdate, ServiceIncident
from app.models.models import Service
from app.repositories.base import BaseRepository, Page, paginate
from app.repositories.service_repository import service_to_entity
from app.services import events
from app.services.events import EventType

logger = logging.getLogger(__name__)

ACTIVE = "active"


@dataclass
class IncidentFilter:
    # a concrete status, or "active" for everything not resolved
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = 1
    limit: Optional[int] = None


def incident_to_entity(row: Incident) -> IncidentEntity:
    return IncidentEntity(
        id=row.id,
        title=row.title,
        description=row.description,
        status=IncidentStatus(row.status),
        impact=ServiceStatus(row.impact),
        organization_id=row.organization_id,
        created_by_id=row.created_by_id,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
        resolved_at=ensure_utc(row.resolved_at),
    )


def update_to_entity(row: IncidentUpdate) -> IncidentUpdateEntity:
    return IncidentUpdateEntity(
        id=row.id,
        incident_id=row.incident_id,
        message=row.message,
        status=IncidentStatus(row.status),
        created_by_id=row.created_by_id,
        created_at=ensure_utc(row.created_at),
    )


class IncidentRepository(BaseRepository):
    """
    Persistence for incidents, their update log and affected services.

    Callers run the incident state machine on the entity before handing it to
    ``update_status``; this class only stores the result and announces it.
    """

    def _get_row(self, incident_id: str) -> Incident:
        row = self.db.query(Incident).filter(Incident.id == incident_id).first()
        if not row:
            raise NotFoundError("Incident", incident_id)
        return row

    def _add_update_row(self, update: IncidentUpdateEntity) -> None:
        self.db.add(IncidentUpdate(
            id=update.id,
            incident_id=update.incident_id,
            message=update.message,
            status=update.status.value,
            created_by_id=update.created_by_id,
            created_at=update.created_at,
        ))

    def create(self, incident: IncidentEntity) -> IncidentEntity:
        self.db.add(Incident(
            id=incident.id,
            title=incident.title,
            description=incident.description,
            status=incident.status.value,
            impact=incident.impact.value,
            organization_id=incident.organization_id,
            created_by_id=incident.created_by_id,
            created_at=incident.created_at,
            updated_at=incident.updated_at,
            resolved_at=incident.resolved_at,
        ))
        self._commit()
        logger.info(
            "incident created",
            extra={"incident_id": incident.id, "organization_id": incident.organization_id},
        )
        self._publish(incident.organization_id, EventType.INCIDENT_CREATE, events.incident_created(incident))
        return incident

    def find_by_id(self, incident_id: str) -> Optional[IncidentEntity]:
        row = self.db.query(Incident).filter(Incident.id == incident_id).first()
        return incident_to_entity(row) if row else None

    def find_by_organization_id(
        self,
        organization_id: str,
        filters: Optional[IncidentFilter] = None,
    ) -> Page[IncidentEntity]:
        filters = filters or IncidentFilter()
        query = self.db.query(Incident).filter(Incident.organization_id == organization_id)
        if filters.status == ACTIVE:
            query = query.filter(Incident.status != IncidentStatus.RESOLVED.value)
        elif filters.status:
            query = query.filter(Incident.status == coerce_enum(IncidentStatus, filters.status, "status").value)
        if filters.start_date:
            query = query.filter(Incident.created_at >= ensure_utc(filters.start_date))
        if filters.end_date:
            query = query.filter(Incident.created_at <= ensure_utc(filters.end_date))
        query = query.order_by(Incident.created_at.desc())
        return paginate(query, filters.page, filters.limit, incident_to_entity)

    def update(self, incident: IncidentEntity) -> IncidentEntity:
        """Persists title, description and impact. Status goes through ``update_status``."""
        row = self._get_row(incident.id)
        row.title = incident.title
        row.description = incident.description
        row.impact = incident.impact.value
        row.updated_at = incident.updated_at
        self._commit()
        self._publish(incident.organization_id, EventType.INCIDENT_UPDATE, events.incident_updated(incident))
        return incident

    def update_status(
        self,
        incident: IncidentEntity,
        message: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> IncidentUpdateEntity:
        """
        Store a status the entity has already transitioned to, together with
        the matching update log entry, then publish ``incident:update``.
        """
        row = self._get_row(incident.id)
        row.status = incident.status.value
        row.updated_at = incident.updated_at
        row.resolved_at = incident.resolved_at
        update = IncidentUpdateEntity.create(
            incident_id=incident.id,
            message=message or f"Status changed to {incident.status.value}",
            status=incident.status,
            created_by_id=created_by_id,
        )
        self._add_update_row(update)
        self._commit()
        logger.info(
            "incident status changed",
            extra={"incident_id": incident.id, "status": incident.status.value},
        )
        self._publish(incident.organization_id, EventType.INCIDENT_UPDATE, events.incident_updated(incident))
        return update

    def delete(self, incident_id: str) -> None:
        row = self._get_row(incident_id)
        self.db.delete(row)
        self._commit()

    def add_update(
        self,
        incident_id: str,
        message: str,
        status: IncidentStatus,
        created_by_id: Optional[str] = None,
    ) -> IncidentUpdateEntity:
        self._get_row(incident_id)
        update = IncidentUpdateEntity.create(
            incident_id=incident_id,
            message=message,
            status=status,
            created_by_id=created_by_id,
        )
        self._add_update_row(update)
        self._commit()
        return update

    def get_updates(self, incident_id: str) -> List[IncidentUpdateEntity]:
        rows = (
            self.db.query(IncidentUpdate)
            .filter(IncidentUpdate.incident_id == incident_id)
            .order_by(IncidentUpdate.created_at.desc())
            .all()
        )
        return [update_to_entity(row) for row in rows]

    def _is_linked(self, incident_id: str, service_id: str) -> bool:
        row = (
            self.db.query(ServiceIncident.id)
            .filter(ServiceIncident.incident_id == incident_id, ServiceIncident.service_id == service_id)
            .first()
        )
        return row is not None

    def add_service_to_incident(self, incident_id: str, service_id: str) -> bool:
        """Returns False when the service was already attached."""
        if self._is_linked(incident_id, service_id):
            return False
        self.db.add(ServiceIncident(id=new_id(), incident_id=incident_id, service_id=service_id))
        try:
            self._commit()
        except IntegrityError:
            # a concurrent attach of the same service got there first
            return False
        return True

    def remove_service_from_incident(self, incident_id: str, service_id: str) -> bool:
        deleted = (
            self.db.query(ServiceIncident)
            .filter(ServiceIncident.incident_id == incident_id, ServiceIncident.service_id == service_id)
            .delete(synchronize_session=False)
        )
        self._commit()
        return bool(deleted)

    def get_services_for_incident(self, incident_id: str) -> List[ServiceEntity]:
        rows = (
            self.db.query(Service)
            .join(ServiceIncident, ServiceIncident.service_id == Service.id)
            .filter(ServiceIncident.incident_id == incident_id)
            .order_by(Service.name.asc())
            .all()
        )
        return [service_to_entity(row) for row in rows]

    def get_incidents_for_service(self, service_id: str) -> List[IncidentEntity]:
        rows = (
            self.db.query(Incident)
            .join(ServiceIncident, ServiceIncident.incident_id == Incident.id)
            .filter(ServiceIncident.service_id == service_id)
            .order_by(Incident.created_at.desc())
            .all()
        )
        return [incident_to_entity(row) for row in rows]
