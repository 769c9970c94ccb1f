from __future__ import annotations

from collections.abc import Mapping

from company_os.core.notification_types import EntityType, NotificationType

_ACTION_URLS: dict[EntityType, str] = {
    EntityType.TASK: "/tasks?task={entity_id}",
    EntityType.LEAD: "/dashboard/crm/leads/{entity_id}",
    EntityType.ORDER: "/dashboard/ops/orders/{entity_id}",
    EntityType.QUOTATION: "/dashboard/ops/quotations/{entity_id}",
    EntityType.SHIPMENT: "/dashboard/ops/shipments/{entity_id}",
    EntityType.APPLICATION: "/dashboard/ats/applications/{entity_id}",
    EntityType.INTERVIEW: "/dashboard/ats/interviews/{entity_id}",
    EntityType.TICKET: "/dashboard/tickets/{entity_id}",
}

_MESSAGES: dict[NotificationType, tuple[str, str]] = {
    NotificationType.TASK_ASSIGNED: ("New Task Assigned", "You have been assigned to task: {entity}"),
    NotificationType.TASK_COMMENTED: ("New Comment", "{actor} commented on task: {entity}"),
    NotificationType.TASK_STATUS_CHANGED: ("Task Status Changed", 'Task "{entity}" status has been updated'),
    NotificationType.TASK_DUE_SOON: ("Task Due Soon", 'Task "{entity}" is due soon'),
    NotificationType.TASK_OVERDUE: ("Task Overdue", 'Task "{entity}" is overdue'),
    NotificationType.TASK_MENTIONED: (
        "You Were Mentioned",
        "{actor} mentioned you in a comment on task: {entity}",
    ),
    NotificationType.LEAD_ASSIGNED: ("New Lead Assigned", "New lead assigned to you: {entity}"),
    NotificationType.LEAD_STATUS_CHANGED: ("Lead Status Changed", 'Lead "{entity}" status has been updated'),
    NotificationType.ORDER_CREATED: ("New Order Created", "New order created: {entity}"),
    NotificationType.ORDER_STATUS_CHANGED: ("Order Status Changed", 'Order "{entity}" status has been updated'),
    NotificationType.QUOTATION_APPROVED: ("Quotation Approved", "Quotation {entity} has been approved"),
    NotificationType.QUOTATION_REJECTED: ("Quotation Rejected", "Quotation {entity} has been rejected"),
    NotificationType.SHIPMENT_DELIVERED: ("Shipment Delivered", "Shipment {entity} has been delivered"),
    NotificationType.TICKET_UPDATED: ("Ticket Updated", 'Ticket "{entity}" has been updated by {actor}'),
    NotificationType.SYSTEM: ("System Notification", "{entity}"),
    NotificationType.MENTION: ("You Were Mentioned", "{actor} mentioned you"),
}


def build_action_url(entity_type: EntityType | None, entity_id: str | None) -> str | None:
    if entity_type is None or not entity_id:
        return None
    template = _ACTION_URLS.get(entity_type)
    if template is None:
        return None
    return template.format(entity_id=entity_id)


def _entity_label(entity: Mapping[str, object]) -> str:
    for key in ("title", "name"):
        value = entity.get(key)
        if value:
            return str(value)
    entity_id = entity.get("id")
    if entity_id:
        return f"#{str(entity_id)[:8]}"
    return "item"


def _actor_label(actor: Mapping[str, object] | None) -> str:
    if not actor:
        return "Someone"
    if actor.get("name"):
        return str(actor["name"])
    first_name = actor.get("first_name")
    last_name = actor.get("last_name")
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return str(first_name or "Someone")


def build_notification_message(
    notification_type: NotificationType,
    entity: Mapping[str, object],
    actor: Mapping[str, object] | None = None,
) -> tuple[str, str]:
    """Return the default ``(title, message)`` pair for a notification."""

    entity_label = _entity_label(entity)
    title, template = _MESSAGES.get(notification_type, ("Notification", "{entity}"))
    return title, template.format(entity=entity_label, actor=_actor_label(actor))
