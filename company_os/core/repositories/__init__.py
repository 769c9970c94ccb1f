from company_os.core.repositories.base import UserContextMissingError, UserScopedRepository
from company_os.core.repositories.notification_preferences import NotificationPreferenceRepository
from company_os.core.repositories.notifications import NotificationFilters, NotificationRepository

__all__ = [
    "UserContextMissingError",
    "UserScopedRepository",
    "NotificationFilters",
    "NotificationPreferenceRepository",
    "NotificationRepository",
]
