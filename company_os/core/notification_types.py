from __future__ import annotations

from enum import Enum


class NotificationType(str, Enum):
    TASK_ASSIGNED = "task_assigned"
    TASK_COMMENTED = "task_commented"
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_DUE_SOON = "task_due_soon"
    TASK_OVERDUE = "task_overdue"
    TASK_MENTIONED = "task_mentioned"
    LEAD_ASSIGNED = "lead_assigned"
    LEAD_STATUS_CHANGED = "lead_status_changed"
    ORDER_CREATED = "order_created"
    ORDER_STATUS_CHANGED = "order_status_changed"
    QUOTATION_APPROVED = "quotation_approved"
    QUOTATION_REJECTED = "quotation_rejected"
    SHIPMENT_DELIVERED = "shipment_delivered"
    TICKET_UPDATED = "ticket_updated"
    SYSTEM = "system"
    MENTION = "mention"


class EntityType(str, Enum):
    TASK = "task"
    LEAD = "lead"
    ORDER = "order"
    QUOTATION = "quotation"
    SHIPMENT = "shipment"
    APPLICATION = "application"
    INTERVIEW = "interview"
    TICKET = "ticket"


def parse_notification_type(value: str | None) -> NotificationType | None:
    """Return the matching type, or ``None`` for blank and unknown values."""

    if not value:
        return None
    try:
        return NotificationType(value.strip().lower())
    except ValueError:
        return None


def parse_entity_type(value: str | None) -> EntityType | None:
    if not value:
        return None
    try:
        return EntityType(value.strip().lower())
    except ValueError:
        return None
