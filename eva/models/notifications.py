"""Proactive notification events and outcomes."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    """Domain events that can trigger a proactive client notification."""

    MATTER_STATUS_CHANGE = "matter_status_change"
    NEW_DOCUMENT = "new_document"
    UPCOMING_DEADLINE = "upcoming_deadline"
    INVOICE_CREATED = "invoice_created"
    TASK_COMPLETED = "task_completed"


VALID_EVENT_TYPES: tuple[str, ...] = tuple(event.value for event in EventType)


@dataclass(frozen=True)
class NotificationEvent:
    """A domain event handed to the notification engine. Consumed once, never stored."""

    event_type: str
    law_firm_id: str
    matter_id: str | None = None
    contact_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class NotificationOutcome(StrEnum):
    SENT = "sent"
    SKIPPED_DISABLED = "skipped_disabled"
    SKIPPED_NO_CONTACT = "skipped_no_contact"
    SKIPPED_NO_SENDER = "skipped_no_sender"
    SKIPPED_EMPTY_GENERATION = "skipped_empty_generation"
    FAILED = "failed"


@dataclass
class NotificationResult:
    """What the engine did with an event."""

    outcome: NotificationOutcome
    conversation_id: str | None = None
    message_id: str | None = None
    reason: str | None = None

    @property
    def sent(self) -> bool:
        return self.outcome is NotificationOutcome.SENT
