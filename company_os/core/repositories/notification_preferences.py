from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from company_os.core.repositories.base import UserScopedRepository
from company_os.models.base import utcnow
from company_os.models.notification_preference import NotificationPreference

PREFERENCE_FIELDS = ("enabled", "email_enabled", "whatsapp_enabled")


class NotificationPreferenceRepository(UserScopedRepository[NotificationPreference]):
    def __init__(self, session: AsyncSession, *, user_id: str | None = None) -> None:
        super().__init__(session=session, model=NotificationPreference, user_id=user_id)

    async def list_all(self) -> list[NotificationPreference]:
        result = await self.session.execute(
            self._scoped_select().order_by(NotificationPreference.notification_type)
        )
        return list(result.scalars().all())

    async def get_by_type(self, notification_type: str) -> NotificationPreference | None:
        result = await self.session.execute(
            self._scoped_select().where(NotificationPreference.notification_type == notification_type)
        )
        return result.scalar_one_or_none()

    def build_upsert(
        self,
        notification_type: str,
        updates: Mapping[str, bool],
        defaults: Mapping[str, bool],
    ):
        changes = {field: updates[field] for field in PREFERENCE_FIELDS if updates.get(field) is not None}
        values = {field: changes.get(field, defaults[field]) for field in PREFERENCE_FIELDS}
        now = utcnow()
        stmt = insert(NotificationPreference).values(
            user_id=self.user_id,
            notification_type=notification_type,
            created_at=now,
            updated_at=now,
            **values,
        )
        return stmt.on_conflict_do_update(
            index_elements=[NotificationPreference.user_id, NotificationPreference.notification_type],
            set_={**changes, "updated_at": now},
        ).returning(NotificationPreference)

    async def upsert(
        self,
        notification_type: str,
        updates: Mapping[str, bool],
        defaults: Mapping[str, bool],
    ) -> NotificationPreference:
        stmt = self.build_upsert(notification_type, updates, defaults)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one()
