from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone

import redis.asyncio as redis
import requests
from fastapi import FastAPI
from redis.exceptions import ResponseError
from sqlalchemy.ext.asyncio import AsyncSession

from company_os.agents.health import AgentHealth
from company_os.core.config import settings
from company_os.core.db import AsyncSessionLocal
from company_os.core.notification_helpers import build_notification_message
from company_os.core.notification_types import EntityType, NotificationType, parse_entity_type, parse_notification_type
from company_os.core.notifications import NotificationStore
from company_os.core.preferences import PreferenceGate

logger = logging.getLogger(__name__)

Channel = str


class NotificationDispatcher:
    def __init__(self, channel_webhooks: dict[Channel, str] | None = None) -> None:
        self.channel_webhooks: dict[Channel, str] = channel_webhooks or {
            "email": settings.n8n_email_webhook_url,
            "whatsapp": settings.n8n_whatsapp_webhook_url,
        }

    def is_configured(self, channel: Channel) -> bool:
        return bool(self.channel_webhooks.get(channel))

    async def dispatch(self, *, channel: Channel, payload: dict[str, object]) -> None:
        webhook = self.channel_webhooks.get(channel, "")
        if not webhook:
            raise ValueError(f"Webhook is not configured for channel={channel}")

        def _post() -> None:
            response = requests.post(webhook, json=payload, timeout=10)
            response.raise_for_status()

        await asyncio.to_thread(_post)


def _json_field(fields: dict[str, str], name: str, default: object) -> object:
    raw = fields.get(name)
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ValueError(f"notification event has malformed {name}") from exc


def resolve_recipients(fields: dict[str, str]) -> list[str]:
    recipients = _json_field(fields, "recipients", [])
    if not isinstance(recipients, list):
        raise ValueError("notification event recipients must be a list")
    excluded = fields.get("exclude_user_id") or None
    unique = dict.fromkeys(str(user_id).strip() for user_id in recipients if user_id)
    return [user_id for user_id in unique if user_id and user_id != excluded]


def build_event_content(
    fields: dict[str, str],
    notification_type: NotificationType,
) -> tuple[str, str]:
    entity = {"id": fields.get("entity_id"), "title": fields.get("entity_title")}
    actor = {"name": fields["actor_name"]} if fields.get("actor_name") else None
    title, message = build_notification_message(notification_type, entity, actor)
    return fields.get("custom_title") or title, fields.get("custom_message") or message


class NotificationAgent:
    def __init__(
        self,
        *,
        redis_client: redis.Redis | None = None,
        dispatcher: NotificationDispatcher | None = None,
        session_factory: Callable[[], AsyncSession] | None = None,
    ) -> None:
        self.health = AgentHealth(name="notification-agent", ready=True)
        self._stop_event = asyncio.Event()
        self._redis = redis_client or redis.from_url(settings.redis_url, decode_responses=True)
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._session_factory = session_factory or AsyncSessionLocal

    async def stop(self) -> None:
        self._stop_event.set()
        await self._redis.aclose()

    async def run(self) -> None:
        await self._ensure_consumer_group()

        retry_delay = 1
        while not self._stop_event.is_set():
            self.health.mark_run()
            try:
                messages = await self._redis.xreadgroup(
                    groupname=settings.notification_consumer_group,
                    consumername=settings.notification_consumer_name,
                    streams={settings.notification_events_stream_name: ">"},
                    count=100,
                    block=settings.notification_stream_block_ms,
                )

                if not messages:
                    continue

                for stream_name, entries in messages:
                    for message_id, fields in entries:
                        await self._process_event(stream_name, message_id, fields)

                self.health.mark_success()
                retry_delay = 1
            except Exception as exc:  # pragma: no cover - operational path
                self.health.mark_error(exc)
                logger.exception("Notification agent stream loop failed")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, 120)

    async def _ensure_consumer_group(self) -> None:
        try:
            await self._redis.xgroup_create(
                name=settings.notification_events_stream_name,
                groupname=settings.notification_consumer_group,
                id="0",
                mkstream=True,
            )
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise

    async def _process_event(self, stream_name: str, message_id: str, fields: dict[str, str]) -> None:
        try:
            await self._handle_event(fields)
            self.health.increment("events_processed")
        except Exception as exc:
            self.health.increment("events_failed")
            logger.warning("Notification event failed message_id=%s error=%s", message_id, exc)
            await self._redis.xadd(
                settings.notification_failure_stream_name,
                {
                    "source_stream": stream_name,
                    "message_id": message_id,
                    "error": str(exc),
                    "payload": json.dumps(fields),
                    "failed_at": datetime.now(timezone.utc).isoformat(),
                },
            )
        # Poison messages are acked once they reach the failure stream.
        await self._redis.xack(stream_name, settings.notification_consumer_group, message_id)

    async def _handle_event(self, fields: dict[str, str]) -> int:
        """Create and forward notifications for one business event.

        Returns the number of in-app notifications created.
        """

        notification_type = parse_notification_type(fields.get("notification_type"))
        entity_type = parse_entity_type(fields.get("entity_type"))
        entity_id = fields.get("entity_id")
        if notification_type is None or entity_type is None or not entity_id:
            raise ValueError("notification event missing notification_type/entity_type/entity_id")

        recipients = resolve_recipients(fields)
        if not recipients:
            logger.debug("No recipients for %s %s:%s", notification_type.value, entity_type.value, entity_id)
            return 0

        metadata = _json_field(fields, "metadata", {})
        title, message = build_event_content(fields, notification_type)

        created = 0
        for user_id in recipients:
            delivered = await self._deliver(
                user_id,
                notification_type,
                entity_type,
                entity_id,
                title=title,
                message=message,
                metadata=metadata,
                action=fields.get("action") or "",
            )
            created += int(delivered)
        return created

    async def _deliver(
        self,
        user_id: str,
        notification_type: NotificationType,
        entity_type: EntityType,
        entity_id: str,
        *,
        title: str,
        message: str,
        metadata: object,
        action: str,
    ) -> bool:
        async with self._session_factory() as session:
            channels = await PreferenceGate(session).delivery_channels(user_id, notification_type.value)
            if not channels.in_app:
                self.health.increment("recipients_skipped")
                return False

            notification = await NotificationStore(session).create_notification(
                {
                    "user_id": user_id,
                    "type": notification_type.value,
                    "title": title,
                    "message": message,
                    "entity_type": entity_type.value,
                    "entity_id": entity_id,
                    "metadata": metadata,
                }
            )

        payload: dict[str, object] = {
            "event_type": notification_type.value,
            "action": action,
            "user_id": user_id,
            "notification_id": str(notification.id),
            "title": title,
            "message": message,
            "action_url": notification.action_url,
            "entity_type": entity_type.value,
            "entity_id": entity_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        enabled = {"email": channels.email, "whatsapp": channels.whatsapp}
        for channel, allowed in enabled.items():
            if not allowed or not self._dispatcher.is_configured(channel):
                continue
            try:
                await self._dispatcher.dispatch(channel=channel, payload={**payload, "channel": channel})
                self.health.increment(f"{channel}_sent")
            except requests.RequestException:
                # The in-app notification already exists; only the forward is lost.
                self.health.increment(f"{channel}_failed")
                logger.exception("Failed to forward notification to %s user_id=%s", channel, user_id)
        return True


notification_agent = NotificationAgent()
app = FastAPI(title="Company OS Notification Agent")


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    app.state.task = asyncio.create_task(notification_agent.run())


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await notification_agent.stop()
    task: asyncio.Task[None] = app.state.task
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


@app.get("/health", tags=["system"])
async def health() -> dict[str, object]:
    return notification_agent.health.payload()


@app.get("/ready", tags=["system"])
async def ready() -> dict[str, bool]:
    return {"ready": notification_agent.health.ready}
