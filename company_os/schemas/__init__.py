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

__all__ = [
    "NotificationResponse",
    "NotificationCreateRequest",
    "NotificationListResponse",
    "NotificationEnvelope",
    "UnreadCountResponse",
    "MarkAllReadResponse",
    "DeleteNotificationResponse",
    "NotificationPreferenceResponse",
    "NotificationPreferenceUpdateRequest",
    "NotificationPreferenceEnvelope",
    "NotificationPreferenceListResponse",
]
