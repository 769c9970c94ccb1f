from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from company_os.core.auth import AuthContext, authenticate_token, require_auth_context
from company_os.core.change_feed import UnreadCountWatcher, change_feed
from company_os.core.db import AsyncSessionLocal, get_db_session
from company_os.core.errors import UnauthorizedError
from company_os.core.notification_types import parse_entity_type, parse_notification_type
from company_os.core.notifications import NotificationStore
from company_os.core.preferences import PreferenceGate
from company_os.core.repositories.notifications import NotificationFilters
from company_os.schemas.notification import (
    DeleteNotificationResponse,
    MarkAllReadResponse,
    NotificationCreateRequest,
    NotificationEnvelope,
    NotificationListResponse,
    NotificationPreferenceEnvelope,
    NotificationPreferenceListResponse,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdateRequest,
    NotificationResponse,
    UnreadCountResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _parse_read_filter(value: str | None) -> bool | None:
    if value == "true":
        return True
    if value == "false":
        return False
    return None


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    read: str | None = Query(default=None),
    type: str | None = Query(default=None),  # noqa: A002
    entity_type: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    offset: int = Query(default=0),
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    filters = NotificationFilters(
        read=_parse_read_filter(read),
        type=parse_notification_type(type),
        entity_type=parse_entity_type(entity_type),
    )
    page = await NotificationStore(session).list_notifications(
        auth.user_id,
        filters,
        limit=limit,
        offset=offset,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(item) for item in page.items],
        total=page.total,
        unread_count=page.unread_count,
        limit=page.limit,
        offset=page.offset,
    )


@router.post("", response_model=NotificationEnvelope, status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: NotificationCreateRequest,
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> NotificationEnvelope:
    values = payload.model_dump()
    values["user_id"] = values.get("user_id") or auth.user_id
    notification = await NotificationStore(session).create_notification(values)
    return NotificationEnvelope(data=NotificationResponse.model_validate(notification))


@router.get("/count", response_model=UnreadCountResponse)
async def unread_count(
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> UnreadCountResponse:
    count = await NotificationStore(session).get_unread_count(auth.user_id)
    return UnreadCountResponse(count=count)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_as_read(
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> MarkAllReadResponse:
    count = await NotificationStore(session).mark_all_as_read(auth.user_id)
    return MarkAllReadResponse(count=count)


@router.get("/preferences", response_model=NotificationPreferenceListResponse)
async def list_preferences(
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> NotificationPreferenceListResponse:
    preferences = await PreferenceGate(session).get_preferences(auth.user_id)
    return NotificationPreferenceListResponse(
        data=[NotificationPreferenceResponse.model_validate(item) for item in preferences]
    )


@router.patch("/preferences", response_model=NotificationPreferenceEnvelope)
async def update_preference(
    payload: NotificationPreferenceUpdateRequest,
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> NotificationPreferenceEnvelope:
    preference = await PreferenceGate(session).update_preference(
        auth.user_id,
        payload.notification_type,
        payload.model_dump(exclude={"notification_type"}, exclude_none=True),
    )
    return NotificationPreferenceEnvelope(data=NotificationPreferenceResponse.model_validate(preference))


@router.patch("/{notification_id}", response_model=NotificationEnvelope)
async def mark_as_read(
    notification_id: str,
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> NotificationEnvelope:
    notification = await NotificationStore(session).mark_as_read(notification_id, auth.user_id)
    return NotificationEnvelope(data=NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", response_model=DeleteNotificationResponse)
async def delete_notification(
    notification_id: str,
    auth: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> DeleteNotificationResponse:
    await NotificationStore(session).delete_notification(notification_id, auth.user_id)
    return DeleteNotificationResponse()


@router.websocket("/stream")
async def notification_stream(websocket: WebSocket) -> None:
    """Push the caller's unread count on connect and after every change."""

    try:
        auth = authenticate_token(websocket.query_params.get("token"))
    except UnauthorizedError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    async def _fetch_count() -> int:
        async with AsyncSessionLocal() as session:
            return await NotificationStore(session).get_unread_count(auth.user_id)

    async def _send_count(count: int) -> None:
        await websocket.send_json({"type": "unread_count", "count": count})

    watcher = UnreadCountWatcher(_fetch_count, _send_count)
    watch_task = asyncio.create_task(watcher.run(change_feed.listen(auth.user_id)))
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                continue
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug("Notification stream closed user_id=%s", auth.user_id)
    finally:
        watch_task.cancel()
        try:
            await watch_task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Unread count watcher failed user_id=%s", auth.user_id)
