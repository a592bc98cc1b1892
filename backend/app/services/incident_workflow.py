import logging
from typing import Iterable, List, Optional, Sequence

from app.core.errors import ForbiddenError, NotFoundError
from app.domain.entities import IncidentEntity, IncidentUpdateEntity, ServiceEntity
from app.domain.patches import IncidentPatch
from app.domain.status import IncidentStatus, ServiceStatus
from app.repositories.incident_repository import IncidentRepository
from app.repositories.service_repository import ServiceRepository

logger = logging.getLogger(__name__)


def resolve_services(
    services: ServiceRepository,
    organization_id: str,
    service_ids: Iterable[str],
) -> List[ServiceEntity]:
    """
    Load ``service_ids`` and check they all belong to ``organization_id``.
    Runs before any write so a bad id leaves storage untouched.
    """
    wanted = list(dict.fromkeys(service_ids or ()))
    found = {service.id: service for service in services.get_services_by_ids(wanted)}
    for service_id in wanted:
        service = found.get(service_id)
        if service is None:
            raise NotFoundError("Service", service_id)
        if service.organization_id != organization_id:
            raise ForbiddenError("Service does not belong to the organization")
    return [found[service_id] for service_id in wanted]


class IncidentWorkflow:
    """
    Incident operations that also move the status of affected services.

    The entity state machine runs first; only a legal transition reaches the
    repositories. Services follow the incident: attached services take the
    incident impact while it is active and return to operational when it
    resolves, when they are detached or when the incident is deleted.
    """

    def __init__(self, incidents: IncidentRepository, services: ServiceRepository):
        self.incidents = incidents
        self.services = services

    def _set_services(self, service_ids: Iterable[str], status: ServiceStatus) -> None:
        for service_id in service_ids:
            self.services.update_status(service_id, status)

    def _attached_ids(self, incident_id: str) -> List[str]:
        return [service.id for service in self.incidents.get_services_for_incident(incident_id)]

    def create(
        self,
        organization_id: str,
        title: str,
        impact: str,
        description: Optional[str] = None,
        status: Optional[str] = None,
        service_ids: Sequence[str] = (),
        initial_update: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> IncidentEntity:
        incident = IncidentEntity.create(
            title=title,
            organization_id=organization_id,
            impact=impact,
            description=description,
            created_by_id=user_id,
            status=status,
        )
        affected = resolve_services(self.services, organization_id, service_ids)

        self.incidents.create(incident)
        for service in affected:
            self.incidents.add_service_to_incident(incident.id, service.id)
        if incident.is_active():
            self._set_services((service.id for service in affected), incident.impact)

        # The first log entry records the status the incident was opened with
        if initial_update:
            self.incidents.add_update(incident.id, initial_update, incident.status, created_by_id=user_id)
        return incident

    def change_status(
        self,
        incident: IncidentEntity,
        status: str,
        message: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> IncidentUpdateEntity:
        incident.update_status(status)
        update = self.incidents.update_status(incident, message=message, created_by_id=user_id)
        if incident.status == IncidentStatus.RESOLVED:
            self._set_services(self._attached_ids(incident.id), ServiceStatus.OPERATIONAL)
        return update

    def edit(self, incident: IncidentEntity, patch: IncidentPatch) -> IncidentEntity:
        impact_sent = patch.impact is not None
        incident.apply(patch)
        self.incidents.update(incident)
        if impact_sent and incident.is_active():
            self._set_services(self._attached_ids(incident.id), incident.impact)
        return incident

    def attach_services(self, incident: IncidentEntity, service_ids: Sequence[str]) -> List[ServiceEntity]:
        affected = resolve_services(self.services, incident.organization_id, service_ids)
        for service in affected:
            self.incidents.add_service_to_incident(incident.id, service.id)
        if incident.is_active():
            self._set_services((service.id for service in affected), incident.impact)
        return self.incidents.get_services_for_incident(incident.id)

    def detach_services(self, incident: IncidentEntity, service_ids: Sequence[str]) -> List[ServiceEntity]:
        affected = resolve_services(self.services, incident.organization_id, service_ids)
        for service in affected:
            if self.incidents.remove_service_from_incident(incident.id, service.id):
                self.services.update_status(service.id, ServiceStatus.OPERATIONAL)
        return self.incidents.get_services_for_incident(incident.id)

    def delete(self, incident: IncidentEntity) -> None:
        self._set_services(self._attached_ids(incident.id), ServiceStatus.OPERATIONAL)
        self.incidents.delete(incident.id)
        logger.info(
            "incident deleted",
            extra={"incident_id": incident.id, "organization_id": incident.organization_id},
        )
