from company_os.models.base import CORE_SCHEMA, Base, SoftDeleteMixin, UserScopedBase
from company_os.models.notification import Notification
from company_os.models.notification_preference import NotificationPreference

__all__ = [
    "CORE_SCHEMA",
    "Base",
    "SoftDeleteMixin",
    "UserScopedBase",
    "Notification",
    "NotificationPreference",
]
