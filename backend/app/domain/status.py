from enum import Enum
from typing import Dict, FrozenSet, Iterable, Union


class ServiceStatus(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    PARTIAL_OUTAGE = "partial_outage"
    MAJOR_OUTAGE = "major_outage"


class IncidentStatus(str, Enum):
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"


class MaintenanceStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TeamRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


INCIDENT_TRANSITIONS: Dict[IncidentStatus, FrozenSet[IncidentStatus]] = {
    IncidentStatus.INVESTIGATING: frozenset({
        IncidentStatus.IDENTIFIED,
        IncidentStatus.MONITORING,
        IncidentStatus.RESOLVED,
    }),
    IncidentStatus.IDENTIFIED: frozenset({
        IncidentStatus.INVESTIGATING,
        IncidentStatus.MONITORING,
        IncidentStatus.RESOLVED,
    }),
    IncidentStatus.MONITORING: frozenset({
        IncidentStatus.INVESTIGATING,
        IncidentStatus.IDENTIFIED,
        IncidentStatus.RESOLVED,
    }),
    # reopen only
    IncidentStatus.RESOLVED: frozenset({IncidentStatus.INVESTIGATING}),
}

MAINTENANCE_TRANSITIONS: Dict[MaintenanceStatus, FrozenSet[MaintenanceStatus]] = {
    MaintenanceStatus.SCHEDULED: frozenset({
        MaintenanceStatus.IN_PROGRESS,
        MaintenanceStatus.COMPLETED,
    }),
    MaintenanceStatus.IN_PROGRESS: frozenset({MaintenanceStatus.COMPLETED}),
    MaintenanceStatus.COMPLETED: frozenset(),
}

STATUS_SEVERITY: Dict[ServiceStatus, int] = {
    ServiceStatus.OPERATIONAL: 0,
    ServiceStatus.DEGRADED: 1,
    ServiceStatus.PARTIAL_OUTAGE: 2,
    ServiceStatus.MAJOR_OUTAGE: 3,
}


def can_incident_transition(
    current: Union[IncidentStatus, str], target: Union[IncidentStatus, str]
) -> bool:
    return IncidentStatus(target) in INCIDENT_TRANSITIONS[IncidentStatus(current)]


def can_maintenance_transition(
    current: Union[MaintenanceStatus, str], target: Union[MaintenanceStatus, str]
) -> bool:
    return MaintenanceStatus(target) in MAINTENANCE_TRANSITIONS[MaintenanceStatus(current)]


def status_severity(status: Union[ServiceStatus, str]) -> int:
    try:
        return STATUS_SEVERITY[ServiceStatus(status)]
    except ValueError:
        return 0


def get_highest_severity_status(statuses: Iterable[Union[ServiceStatus, str]]) -> ServiceStatus:
    """
    Overall status for a set of services: the most severe member,
    operational when the set is empty.
    """
    highest = ServiceStatus.OPERATIONAL
    for status in statuses:
        if status_severity(status) > status_severity(highest):
            highest = ServiceStatus(status)
    return highest
