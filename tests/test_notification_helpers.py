from __future__ import annotations

import pytest

from company_os.core.notification_helpers import build_action_url, build_notification_message
from company_os.core.notification_types import EntityType, NotificationType


@pytest.mark.parametrize(
    ("entity_type", "expected"),
    [
        (EntityType.TASK, "/tasks?task=abc"),
        (EntityType.LEAD, "/dashboard/crm/leads/abc"),
        (EntityType.TICKET, "/dashboard/tickets/abc"),
    ],
)
def test_build_action_url(entity_type: EntityType, expected: str) -> None:
    assert build_action_url(entity_type, "abc") == expected


def test_build_action_url_needs_entity() -> None:
    assert build_action_url(None, "abc") is None
    assert build_action_url(EntityType.ORDER, None) is None


def test_message_uses_entity_title_and_actor_name() -> None:
    title, message = build_notification_message(
        NotificationType.TASK_COMMENTED,
        {"id": "1234567890", "title": "Quarterly report"},
        {"first_name": "Ada", "last_name": "Lovelace"},
    )

    assert title == "New Comment"
    assert message == "Ada Lovelace commented on task: Quarterly report"


def test_message_falls_back_to_short_id_and_someone() -> None:
    _, message = build_notification_message(
        NotificationType.TICKET_UPDATED,
        {"id": "abcdef1234567890"},
    )

    assert message == 'Ticket "#abcdef12" has been updated by Someone'


def test_system_message_uses_entity_label() -> None:
    title, message = build_notification_message(NotificationType.SYSTEM, {"name": "Maintenance tonight"})

    assert title == "System Notification"
    assert message == "Maintenance tonight"
