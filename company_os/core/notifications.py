from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from company_os.core.change_feed import ChangeEvent, ChangeFeed, NotificationChange, change_feed
from company_os.core.config import settings
from company_os.core.errors import NotFoundError, ValidationError, store_failures
from company_os.core.notification_helpers import build_action_url
from company_os.core.notification_types import parse_entity_type, parse_notification_type
from company_os.core.repositories.notifications import NotificationFilters, NotificationRepository
from company_os.models.notification import Notification

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("user_id", "type", "title", "message")


@dataclass(slots=True)
class NotificationPage:
    items: list[Notification]
    total: int
    unread_count: int
    limit: int
    offset: int


def _parse_notification_id(notification_id: UUID | str) -> UUID:
    if isinstance(notification_id, UUID):
        return notification_id
    try:
        return UUID(str(notification_id))
    except ValueError as exc:
        raise NotFoundError() from exc


def _notification_values(payload: Mapping[str, object], *, require_user: bool = True) -> dict[str, object]:
    required = REQUIRED_FIELDS if require_user else REQUIRED_FIELDS[1:]
    missing = [name for name in required if not str(payload.get(name) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    notification_type = parse_notification_type(str(payload["type"]))
    if notification_type is None:
        raise ValidationError(f"Unknown notification type: {payload['type']}")

    raw_entity_type = payload.get("entity_type")
    entity_type = parse_entity_type(str(raw_entity_type)) if raw_entity_type else None
    if raw_entity_type and entity_type is None:
        raise ValidationError(f"Unknown entity type: {raw_entity_type}")

    metadata = payload.get("metadata")
    if metadata is not None and not isinstance(metadata, Mapping):
        raise ValidationError("metadata must be an object")

    entity_id = str(payload["entity_id"]) if payload.get("entity_id") else None
    action_url = payload.get("action_url") or build_action_url(entity_type, entity_id)

    values: dict[str, object] = {
        "type": notification_type.value,
        "title": str(payload["title"]).strip(),
        "message": str(payload["message"]).strip(),
        "entity_type": entity_type.value if entity_type else None,
        "entity_id": entity_id,
        "action_url": action_url,
        "extra": dict(metadata) if metadata is not None else None,
    }
    if require_user:
        values["user_id"] = str(payload["user_id"]).strip()
    return values


class NotificationStore:
    """Read/list/count and read-state operations over a user's notifications.

    Every successful mutation is committed before a change signal is
    published for the owning user.
    """

    def __init__(self, session: AsyncSession, feed: ChangeFeed | None = None) -> None:
        self.session = session
        self.feed = feed or change_feed

    def _repository(self, user_id: str) -> NotificationRepository:
        return NotificationRepository(self.session, user_id=user_id)

    async def _publish(self, event: ChangeEvent, user_id: str, notification_id: UUID | None = None) -> None:
        await self.feed.publish(
            NotificationChange(
                event=event,
                user_id=user_id,
                notification_id=str(notification_id) if notification_id else None,
            )
        )

    async def list_notifications(
        self,
        user_id: str,
        filters: NotificationFilters | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> NotificationPage:
        if limit is None:
            limit = settings.notification_default_page_size
        if limit < 0 or offset < 0:
            raise ValidationError("limit and offset must be non-negative integers")
        limit = min(limit, settings.notification_max_page_size)

        repository = self._repository(user_id)
        async with store_failures(self.session, "fetch notifications"):
            items = await repository.list_page(filters, limit=limit, offset=offset) if limit else []
            total = await repository.count(filters)
            unread_count = await repository.count_unread()

        return NotificationPage(
            items=items,
            total=total,
            unread_count=unread_count,
            limit=limit,
            offset=offset,
        )

    async def get_unread_count(self, user_id: str) -> int:
        async with store_failures(self.session, "get unread count"):
            return await self._repository(user_id).count_unread()

    async def create_notification(self, payload: Mapping[str, object]) -> Notification:
        values = _notification_values(payload)
        user_id = str(values.pop("user_id"))

        async with store_failures(self.session, "create notification"):
            notification = await self._repository(user_id).create(**values)
            await self.session.commit()

        logger.info("Created notification id=%s type=%s user_id=%s", notification.id, notification.type, user_id)
        await self._publish("INSERT", user_id, notification.id)
        return notification

    async def create_notifications_for_users(
        self,
        user_ids: Iterable[str],
        payload: Mapping[str, object],
    ) -> list[Notification]:
        recipients = list(dict.fromkeys(user_id.strip() for user_id in user_ids if user_id and user_id.strip()))
        if not recipients:
            return []
        values = _notification_values(payload, require_user=False)

        async with store_failures(self.session, "create notifications"):
            created = [await self._repository(user_id).create(**values) for user_id in recipients]
            await self.session.commit()

        for notification in created:
            await self._publish("INSERT", notification.user_id, notification.id)
        return created

    async def mark_as_read(self, notification_id: UUID | str, user_id: str) -> Notification:
        parsed_id = _parse_notification_id(notification_id)
        async with store_failures(self.session, "mark notification as read"):
            notification = await self._repository(user_id).mark_as_read(parsed_id)
            if notification is not None:
                await self.session.commit()

        if notification is None:
            raise NotFoundError()
        await self._publish("UPDATE", user_id, notification.id)
        return notification

    async def mark_all_as_read(self, user_id: str) -> int:
        async with store_failures(self.session, "mark all notifications as read"):
            count = await self._repository(user_id).mark_all_as_read()
            await self.session.commit()

        if count:
            await self._publish("UPDATE", user_id)
        return count

    async def delete_notification(self, notification_id: UUID | str, user_id: str) -> Notification:
        parsed_id = _parse_notification_id(notification_id)
        async with store_failures(self.session, "delete notification"):
            notification = await self._repository(user_id).soft_delete(parsed_id)
            if notification is not None:
                await self.session.commit()

        if notification is None:
            raise NotFoundError()
        await self._publish("DELETE", user_id, notification.id)
        return notification
