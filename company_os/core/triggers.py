from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping

import redis.asyncio as redis

from company_os.core.config import settings
from company_os.core.notification_types import EntityType, NotificationType

logger = logging.getLogger(__name__)


def trigger_dedupe_key(
    entity_type: EntityType,
    entity_id: str,
    action: str,
    notification_type: NotificationType,
    actor_id: str | None,
) -> str:
    return f"notifications:trigger:{entity_type.value}:{entity_id}:{action}:{notification_type.value}:{actor_id or ''}"


def build_trigger_event(
    entity_type: EntityType,
    entity_id: str,
    action: str,
    notification_type: NotificationType,
    *,
    actor_id: str | None = None,
    actor_name: str | None = None,
    entity_title: str | None = None,
    recipients: Iterable[str] = (),
    exclude_user_id: str | None = None,
    metadata: Mapping[str, object] | None = None,
    custom_title: str | None = None,
    custom_message: str | None = None,
) -> dict[str, str]:
    # Stream entries only carry flat string fields.
    return {
        "entity_type": entity_type.value,
        "entity_id": entity_id,
        "action": action,
        "notification_type": notification_type.value,
        "actor_id": actor_id or "",
        "actor_name": actor_name or "",
        "entity_title": entity_title or "",
        "recipients": json.dumps(list(recipients)),
        "exclude_user_id": exclude_user_id or "",
        "metadata": json.dumps(dict(metadata or {})),
        "custom_title": custom_title or "",
        "custom_message": custom_message or "",
    }


async def trigger_notification(
    entity_type: EntityType,
    entity_id: str,
    action: str,
    notification_type: NotificationType,
    **options: object,
) -> bool:
    """Queue a business event for the notification agent.

    Returns ``False`` when an identical trigger was queued within the
    de-duplication window.
    """

    fields = build_trigger_event(entity_type, entity_id, action, notification_type, **options)  # type: ignore[arg-type]
    dedupe_key = trigger_dedupe_key(
        entity_type,
        entity_id,
        action,
        notification_type,
        fields["actor_id"] or None,
    )

    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        first = await redis_client.set(
            dedupe_key,
            "1",
            nx=True,
            ex=settings.notification_trigger_dedupe_seconds,
        )
        if not first:
            logger.info("Dropped duplicate notification trigger key=%s", dedupe_key)
            return False
        await redis_client.xadd(settings.notification_events_stream_name, fields)
    finally:
        await redis_client.aclose()
    return True
