from typing import List, Optional

from app.core.errors import NotFoundError
from app.domain.entities import CommentEntity, MaintenanceEntity, ensure_utc
from app.models.maintenance import Comment
from app.repositories.base import BaseRepository, Page, paginate
from app.services import events
from app.services.events import EventType


def comment_to_entity(row: Comment) -> CommentEntity:
    return CommentEntity(
        id=row.id,
        content=row.content,
        user_id=row.user_id,
        maintenance_id=row.maintenance_id,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


class CommentRepository(BaseRepository):
    """Maintenance comments. Incident comments have a column but no read or write path."""

    def _get_row(self, comment_id: str) -> Comment:
        row = self.db.query(Comment).filter(Comment.id == comment_id).first()
        if not row:
            raise NotFoundError("Comment", comment_id)
        return row

    def find_by_id(self, comment_id: str) -> Optional[CommentEntity]:
        row = self.db.query(Comment).filter(Comment.id == comment_id).first()
        return comment_to_entity(row) if row else None

    def find_by_maintenance_id(self, maintenance_id: str) -> List[CommentEntity]:
        rows = (
            self.db.query(Comment)
            .filter(Comment.maintenance_id == maintenance_id)
            .order_by(Comment.created_at.asc())
            .all()
        )
        return [comment_to_entity(row) for row in rows]

    def page_by_maintenance_id(
        self,
        maintenance_id: str,
        page: int = 1,
        limit: Optional[int] = None,
        newest_first: bool = False,
    ) -> Page[CommentEntity]:
        order = Comment.created_at.desc() if newest_first else Comment.created_at.asc()
        query = self.db.query(Comment).filter(Comment.maintenance_id == maintenance_id).order_by(order)
        return paginate(query, page, limit, comment_to_entity)

    def create(self, comment: CommentEntity, maintenance: MaintenanceEntity) -> CommentEntity:
        """``maintenance`` is the parent the comment is announced under."""
        self.db.add(Comment(
            id=comment.id,
            content=comment.content,
            user_id=comment.user_id,
            maintenance_id=comment.maintenance_id,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        ))
        self._commit()
        self._publish(
            maintenance.organization_id,
            EventType.COMMENT_CREATE,
            events.comment_created(comment, maintenance),
        )
        return comment

    def update(self, comment: CommentEntity) -> CommentEntity:
        row = self._get_row(comment.id)
        row.content = comment.content
        row.updated_at = comment.updated_at
        self._commit()
        return comment

    def delete(self, comment_id: str) -> None:
        row = self._get_row(comment_id)
        self.db.delete(row)
        self._commit()
