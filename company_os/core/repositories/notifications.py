from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from company_os.core.notification_types import EntityType, NotificationType
from company_os.core.repositories.base import UserScopedRepository
from company_os.models.notification import Notification


@dataclass(slots=True)
class NotificationFilters:
    read: bool | None = None
    type: NotificationType | None = None
    entity_type: EntityType | None = None


class NotificationRepository(UserScopedRepository[Notification]):
    def __init__(self, session: AsyncSession, *, user_id: str | None = None) -> None:
        super().__init__(session=session, model=Notification, user_id=user_id)

    def _filtered(self, stmt: Select, filters: NotificationFilters | None) -> Select:
        if filters is None:
            return stmt
        if filters.read is not None:
            stmt = stmt.where(Notification.read.is_(filters.read))
        if filters.type is not None:
            stmt = stmt.where(Notification.type == filters.type.value)
        if filters.entity_type is not None:
            stmt = stmt.where(Notification.entity_type == filters.entity_type.value)
        return stmt

    async def list_page(
        self,
        filters: NotificationFilters | None = None,
        *,
        limit: int,
        offset: int = 0,
    ) -> list[Notification]:
        stmt = (
            self._filtered(self._scoped_select(), filters)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, filters: NotificationFilters | None = None) -> int:
        stmt = self._scope(select(func.count()).select_from(Notification))
        result = await self.session.execute(self._filtered(stmt, filters))
        return int(result.scalar_one() or 0)

    async def count_unread(self) -> int:
        return await self.count(NotificationFilters(read=False))

    async def mark_as_read(self, notification_id: UUID) -> Notification | None:
        stmt = (
            self._scoped_update()
            .where(Notification.id == notification_id)
            .values(read=True, read_at=func.coalesce(Notification.read_at, func.now()))
            .returning(Notification)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_all_as_read(self) -> int:
        stmt = (
            self._scoped_update()
            .where(Notification.read.is_(False))
            .values(read=True, read_at=func.now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def soft_delete(self, notification_id: UUID) -> Notification | None:
        stmt = (
            self._scoped_update()
            .where(Notification.id == notification_id)
            .values(deleted_at=func.now())
            .returning(Notification)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
