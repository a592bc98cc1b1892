import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from app.core.errors import IllegalTransitionError, ValidationFailed
from app.domain.patches import (
    IncidentPatch,
    MaintenancePatch,
    OrganizationPatch,
    ServicePatch,
    TeamPatch,
    merge_patch,
)
from app.domain.status import (
    IncidentStatus,
    MaintenanceStatus,
    ServiceStatus,
    TeamRole,
    can_incident_transition,
    can_maintenance_transition,
    get_highest_severity_status,
    status_severity,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None


def new_id() -> str:
    return str(uuid.uuid4())


def coerce_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailed(field_name, f"must be one of: {allowed}")


@dataclass
class OrganizationEntity:
    name: str
    slug: str
    logo_url: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, name: str, slug: str, logo_url: Optional[str] = None) -> "OrganizationEntity":
        now = utcnow()
        return cls(name=name, slug=slug, logo_url=logo_url, created_at=now, updated_at=now)

    def apply(self, patch: OrganizationPatch) -> "OrganizationEntity":
        if merge_patch(self, patch):
            self.updated_at = utcnow()
        return self


@dataclass
class StatusChange:
    service_id: str
    status: ServiceStatus
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None


@dataclass
class ServiceEntity:
    name: str
    organization_id: str
    description: Optional[str] = None
    status: ServiceStatus = ServiceStatus.OPERATIONAL
    is_public: bool = True
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        name: str,
        organization_id: str,
        description: Optional[str] = None,
        status: Union[ServiceStatus, str] = ServiceStatus.OPERATIONAL,
        is_public: bool = True,
    ) -> "ServiceEntity":
        now = utcnow()
        return cls(
            name=name,
            organization_id=organization_id,
            description=description,
            status=coerce_enum(ServiceStatus, status, "status"),
            is_public=is_public,
            created_at=now,
            updated_at=now,
        )

    def apply(self, patch: ServicePatch) -> "ServiceEntity":
        if merge_patch(self, patch):
            self.updated_at = utcnow()
        return self

    def update_status(self, status: Union[ServiceStatus, str]) -> bool:
        """
        Returns False without touching the entity when the status is unchanged.
        """
        status = coerce_enum(ServiceStatus, status, "status")
        if status == self.status:
            return False
        self.status = status
        self.updated_at = utcnow()
        return True

    def create_status_change(self) -> StatusChange:
        return StatusChange(service_id=self.id, status=self.status, created_at=utcnow())

    @staticmethod
    def get_status_severity(status: Union[ServiceStatus, str]) -> int:
        return status_severity(status)

    @staticmethod
    def get_highest_severity_status(statuses: Iterable[Union[ServiceStatus, str]]) -> ServiceStatus:
        return get_highest_severity_status(statuses)


@dataclass
class IncidentEntity:
    title: str
    organization_id: str
    impact: ServiceStatus = ServiceStatus.DEGRADED
    description: Optional[str] = None
    status: IncidentStatus = IncidentStatus.INVESTIGATING
    created_by_id: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        title: str,
        organization_id: str,
        impact: Union[ServiceStatus, str],
        description: Optional[str] = None,
        created_by_id: Optional[str] = None,
        status: Union[IncidentStatus, str, None] = None,
    ) -> "IncidentEntity":
        now = utcnow()
        initial = coerce_enum(IncidentStatus, status or IncidentStatus.INVESTIGATING, "status")
        return cls(
            title=title,
            organization_id=organization_id,
            impact=coerce_enum(ServiceStatus, impact, "impact"),
            description=description,
            status=initial,
            created_by_id=created_by_id,
            created_at=now,
            updated_at=now,
            resolved_at=now if initial == IncidentStatus.RESOLVED else None,
        )

    def apply(self, patch: IncidentPatch) -> "IncidentEntity":
        if merge_patch(self, patch):
            self.updated_at = utcnow()
        return self

    def can_transition_to(self, target: Union[IncidentStatus, str]) -> bool:
        return can_incident_transition(self.status, target)

    def update_status(self, target: Union[IncidentStatus, str]) -> "IncidentEntity":
        target = coerce_enum(IncidentStatus, target, "status")
        if not self.can_transition_to(target):
            raise IllegalTransitionError(self.status.value, target.value, entity="incident")
        now = utcnow()
        self.status = target
        self.updated_at = now
        # Stamped once; a reopened incident keeps its first resolution time.
        if target == IncidentStatus.RESOLVED and self.resolved_at is None:
            self.resolved_at = now
        return self

    def is_active(self) -> bool:
        return self.status != IncidentStatus.RESOLVED


@dataclass(frozen=True)
class IncidentUpdateEntity:
    incident_id: str
    message: str
    status: IncidentStatus
    created_by_id: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        incident_id: str,
        message: str,
        status: Union[IncidentStatus, str],
        created_by_id: Optional[str] = None,
    ) -> "IncidentUpdateEntity":
        return cls(
            incident_id=incident_id,
            message=message,
            status=coerce_enum(IncidentStatus, status, "status"),
            created_by_id=created_by_id,
        )


@dataclass
class MaintenanceEntity:
    title: str
    organization_id: str
    scheduled_start_time: datetime
    scheduled_end_time: datetime
    description: Optional[str] = None
    status: MaintenanceStatus = MaintenanceStatus.SCHEDULED
    created_by_id: Optional[str] = None
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        title: str,
        organization_id: str,
        scheduled_start_time: datetime,
        scheduled_end_time: datetime,
        description: Optional[str] = None,
        created_by_id: Optional[str] = None,
    ) -> "MaintenanceEntity":
        _check_window(scheduled_start_time, scheduled_end_time)
        now = utcnow()
        return cls(
            title=title,
            organization_id=organization_id,
            scheduled_start_time=ensure_utc(scheduled_start_time),
            scheduled_end_time=ensure_utc(scheduled_end_time),
            description=description,
            created_by_id=created_by_id,
            created_at=now,
            updated_at=now,
        )

    def apply(self, patch: MaintenancePatch) -> "MaintenanceEntity":
        changes = patch.changes()
        start = changes.get("scheduled_start_time", self.scheduled_start_time)
        end = changes.get("scheduled_end_time", self.scheduled_end_time)
        if start is not None and end is not None:
            _check_window(start, end)
        if merge_patch(self, patch):
            self.scheduled_start_time = ensure_utc(self.scheduled_start_time)
            self.scheduled_end_time = ensure_utc(self.scheduled_end_time)
            self.updated_at = utcnow()
        return self

    def can_transition_to(self, target: Union[MaintenanceStatus, str]) -> bool:
        return can_maintenance_transition(self.status, target)

    def update_status(
        self,
        target: Union[MaintenanceStatus, str],
        actual_start_time: Optional[datetime] = None,
        actual_end_time: Optional[datetime] = None,
    ) -> "MaintenanceEntity":
        """
        Move to ``target``. Actual times are captured from the clock unless the
        caller supplies them (retroactive correction).
        """
        target = coerce_enum(MaintenanceStatus, target, "status")
        if not self.can_transition_to(target):
            raise IllegalTransitionError(self.status.value, target.value, entity="maintenance")

        now = utcnow()
        start = self.actual_start_time
        end = self.actual_end_time
        if target == MaintenanceStatus.IN_PROGRESS:
            if actual_start_time is not None:
                start = ensure_utc(actual_start_time)
            elif start is None:
                start = now
        elif target == MaintenanceStatus.COMPLETED:
            if actual_start_time is not None:
                start = ensure_utc(actual_start_time)
            elif start is None:
                start = now
            end = ensure_utc(actual_end_time) if actual_end_time is not None else now

        if start is not None and end is not None and ensure_utc(end) < ensure_utc(start):
            raise ValidationFailed("actual_end_time", "must not be before the actual start time")

        self.actual_start_time = start
        self.actual_end_time = end
        self.status = target
        self.updated_at = now
        return self

    def is_active(self) -> bool:
        return self.status != MaintenanceStatus.COMPLETED

    def is_upcoming(self, at: Optional[datetime] = None) -> bool:
        at = at or utcnow()
        return self.status == MaintenanceStatus.SCHEDULED and ensure_utc(self.scheduled_start_time) > at

    def is_in_progress(self, at: Optional[datetime] = None) -> bool:
        at = at or utcnow()
        if self.status == MaintenanceStatus.IN_PROGRESS:
            return True
        return (
            self.status == MaintenanceStatus.SCHEDULED
            and ensure_utc(self.scheduled_start_time) <= at < ensure_utc(self.scheduled_end_time)
        )


def _check_window(start: datetime, end: datetime) -> None:
    if ensure_utc(start) >= ensure_utc(end):
        raise ValidationFailed("scheduled_end_time", "must be after scheduled start time")


@dataclass
class CommentEntity:
    content: str
    user_id: str
    maintenance_id: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, content: str, user_id: str, maintenance_id: str) -> "CommentEntity":
        now = utcnow()
        return cls(content=content, user_id=user_id, maintenance_id=maintenance_id, created_at=now, updated_at=now)

    def update(self, content: str) -> "CommentEntity":
        self.content = content
        self.updated_at = utcnow()
        return self


@dataclass
class TeamEntity:
    name: str
    organization_id: str
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, name: str, organization_id: str) -> "TeamEntity":
        now = utcnow()
        return cls(name=name, organization_id=organization_id, created_at=now, updated_at=now)

    def apply(self, patch: TeamPatch) -> "TeamEntity":
        if merge_patch(self, patch):
            self.updated_at = utcnow()
        return self


@dataclass
class TeamMemberEntity:
    user_id: str
    team_id: str
    role: TeamRole = TeamRole.MEMBER
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls, user_id: str, team_id: str, role: Union[TeamRole, str] = TeamRole.MEMBER
    ) -> "TeamMemberEntity":
        now = utcnow()
        return cls(
            user_id=user_id,
            team_id=team_id,
            role=coerce_enum(TeamRole, role, "role"),
            created_at=now,
            updated_at=now,
        )

    def update_role(self, role: Union[TeamRole, str]) -> "TeamMemberEntity":
        self.role = coerce_enum(TeamRole, role, "role")
        self.updated_at = utcnow()
        return self
