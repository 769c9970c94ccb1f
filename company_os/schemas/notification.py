from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    user_id: str
    type: str
    title: str
    message: str
    entity_type: str | None = None
    entity_id: str | None = None
    action_url: str | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="extra")
    read: bool
    read_at: datetime | None = None
    created_at: datetime
    deleted_at: datetime | None = None


class NotificationCreateRequest(BaseModel):
    # Required fields are checked by the store so that every caller gets the same message.
    user_id: str | None = None
    type: str | None = None
    title: str | None = None
    message: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    action_url: str | None = None
    metadata: dict[str, Any] | None = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread_count: int
    limit: int
    offset: int


class NotificationEnvelope(BaseModel):
    data: NotificationResponse


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    success: bool = True
    count: int


class DeleteNotificationResponse(BaseModel):
    success: bool = True


class NotificationPreferenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    notification_type: str
    enabled: bool
    email_enabled: bool
    whatsapp_enabled: bool
    created_at: datetime
    updated_at: datetime


class NotificationPreferenceUpdateRequest(BaseModel):
    notification_type: str | None = None
    enabled: bool | None = None
    email_enabled: bool | None = None
    whatsapp_enabled: bool | None = None


class NotificationPreferenceEnvelope(BaseModel):
    data: NotificationPreferenceResponse


class NotificationPreferenceListResponse(BaseModel):
    data: list[NotificationPreferenceResponse]
