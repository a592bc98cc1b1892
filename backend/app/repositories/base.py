import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from app.core.config import settings
from app.services.broadcaster import Broadcaster

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = settings.DEFAULT_PAGE_LIMIT

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)


def paginate(query: Query, page: Optional[int], limit: Optional[int], convert: Callable[[Any], T]) -> Page[T]:
    """One 1-based page of ``query`` with each row passed through ``convert``."""
    page = max(page or 1, 1)
    limit = min(max(limit or settings.DEFAULT_PAGE_LIMIT, 1), settings.MAX_PAGE_LIMIT)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=[convert(row) for row in rows], total=total, page=page, limit=limit)


class BaseRepository:
    """
    Shared plumbing for the SQLAlchemy repositories.

    Writes go through ``_commit`` and only after it returns does a repository
    call ``_publish``, so clients are never told about state that failed to
    persist. A missing or failing broadcaster never fails the write.
    """

    def __init__(self, db: Session, broadcaster: Optional[Broadcaster] = None):
        self.db = db
        self.broadcaster = broadcaster

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("database commit failed", exc_info=True)
            raise

    def _publish(self, organization_id: str, event_type: Union[str, Enum], payload: Dict[str, Any]) -> None:
        event_name = event_type.value if isinstance(event_type, Enum) else event_type
        if self.broadcaster is None:
            logger.warning(
                "no broadcaster configured, event skipped",
                extra={"organization_id": organization_id, "event": event_name},
            )
            return
        try:
            self.broadcaster.publish(organization_id, event_type, payload)
        except Exception:
            logger.warning(
                "broadcast failed",
                exc_info=True,
                extra={"organization_id": organization_id, "event": event_name},
            )
