from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.domain.patches import SLUG_PATTERN
from app.domain.status import IncidentStatus, MaintenanceStatus, ServiceStatus, TeamRole


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrganizationCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    slug: str = Field(min_length=1, max_length=100, pattern=SLUG_PATTERN)
    logo_url: Optional[str] = None


class ServiceCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    status: ServiceStatus = ServiceStatus.OPERATIONAL
    is_public: bool = True


class ServiceStatusUpdate(CamelModel):
    status: ServiceStatus


class ServiceLinks(CamelModel):
    service_ids: List[str] = Field(min_length=1)
    action: Literal["add", "remove"]


class IncidentCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    impact: ServiceStatus
    status: Optional[IncidentStatus] = None
    service_ids: List[str] = Field(default_factory=list)
    initial_update: Optional[str] = None


class IncidentStatusUpdate(CamelModel):
    status: IncidentStatus
    message: Optional[str] = None


class MaintenanceCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    scheduled_start_time: datetime
    scheduled_end_time: datetime
    service_ids: List[str] = Field(default_factory=list)


class MaintenanceStatusUpdate(CamelModel):
    status: MaintenanceStatus
    # retroactive corrections; the server clock is used when omitted
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None


class CommentCreate(CamelModel):
    content: str = Field(min_length=1, max_length=5000)


class TeamCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)


class TeamMemberCreate(CamelModel):
    user_id: str = Field(min_length=1)
    role: TeamRole = TeamRole.MEMBER


class TeamMemberUpdate(CamelModel):
    role: TeamRole
