"""Per-user, per-type delivery preferences.

A user with no stored row for a type gets ``DEFAULT_PREFERENCE``. The same
defaults seed a row the first time the user saves a preference, so the
gate and the settings screen never disagree.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from sqlalchemy.ext.asyncio import AsyncSession

from company_os.core.errors import ValidationError, store_failures
from company_os.core.repositories.notification_preferences import NotificationPreferenceRepository
from company_os.models.notification_preference import NotificationPreference

DEFAULT_PREFERENCE: Mapping[str, bool] = MappingProxyType(
    {
        "enabled": True,
        "email_enabled": True,
        "whatsapp_enabled": True,
    }
)


@dataclass(slots=True, frozen=True)
class DeliveryChannels:
    in_app: bool
    email: bool
    whatsapp: bool

    @property
    def any(self) -> bool:
        return self.in_app or self.email or self.whatsapp


def channels_from(preference: NotificationPreference | None) -> DeliveryChannels:
    if preference is None:
        values = DEFAULT_PREFERENCE
    else:
        values = {
            "enabled": preference.enabled,
            "email_enabled": preference.email_enabled,
            "whatsapp_enabled": preference.whatsapp_enabled,
        }
    enabled = bool(values["enabled"])
    return DeliveryChannels(
        in_app=enabled,
        email=enabled and bool(values["email_enabled"]),
        whatsapp=enabled and bool(values["whatsapp_enabled"]),
    )


class PreferenceGate:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _repository(self, user_id: str) -> NotificationPreferenceRepository:
        return NotificationPreferenceRepository(self.session, user_id=user_id)

    async def get_preferences(self, user_id: str) -> list[NotificationPreference]:
        async with store_failures(self.session, "fetch preferences"):
            return await self._repository(user_id).list_all()

    async def update_preference(
        self,
        user_id: str,
        notification_type: str | None,
        updates: Mapping[str, bool | None],
    ) -> NotificationPreference:
        notification_type = (notification_type or "").strip()
        if not notification_type:
            raise ValidationError("notification_type is required")

        async with store_failures(self.session, "update preference"):
            preference = await self._repository(user_id).upsert(
                notification_type,
                updates,
                DEFAULT_PREFERENCE,
            )
            await self.session.commit()
        return preference

    async def delivery_channels(self, user_id: str, notification_type: str) -> DeliveryChannels:
        async with store_failures(self.session, "fetch preference"):
            preference = await self._repository(user_id).get_by_type(notification_type)
        return channels_from(preference)

    async def is_enabled(self, user_id: str, notification_type: str) -> bool:
        channels = await self.delivery_channels(user_id, notification_type)
        return channels.in_app
