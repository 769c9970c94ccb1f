from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from company_os.models.base import SoftDeleteMixin, UserScopedBase


class Notification(SoftDeleteMixin, UserScopedBase):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read_active", "user_id", "read", "deleted_at"),
        Index("ix_notifications_created_at", "created_at"),
    )

    type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    action_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes.
    extra: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
