"""
Partial-update value objects.

A patch only carries the fields the caller actually sent. ``merge_patch`` is
the single place those fields are applied to an entity:

* a field that was not sent is left unchanged,
* a field sent with a value overwrites the entity attribute,
* a field sent as ``null`` clears the attribute when the field is nullable
  and is rejected otherwise.
"""
from datetime import datetime
from typing import Any, ClassVar, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.errors import ValidationFailed
from app.domain.status import ServiceStatus

SLUG_PATTERN = r"^[a-z0-9-]+$"


class Patch(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    NULLABLE: ClassVar[FrozenSet[str]] = frozenset()

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}

    def is_empty(self) -> bool:
        return not self.model_fields_set


class ServicePatch(Patch):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"description"})

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_public: Optional[bool] = None


class IncidentPatch(Patch):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"description"})

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    impact: Optional[ServiceStatus] = None


class MaintenancePatch(Patch):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"description"})

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    scheduled_start_time: Optional[datetime] = None
    scheduled_end_time: Optional[datetime] = None


class OrganizationPatch(Patch):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"logo_url"})

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    logo_url: Optional[str] = None


class TeamPatch(Patch):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)


def merge_patch(entity: Any, patch: Patch) -> bool:
    """
    Apply ``patch`` to ``entity`` in place. Returns True when at least one
    field was present in the patch. Null checks run before any attribute is
    written so a rejected patch leaves the entity untouched.
    """
    changes = patch.changes()
    for name, value in changes.items():
        if value is None and name not in patch.NULLABLE:
            raise ValidationFailed(name, "cannot be null")
        if not hasattr(entity, name):
            raise ValidationFailed(name, "unknown field")
    for name, value in changes.items():
        setattr(entity, name, value)
    return bool(changes)
