"""Tenant feature settings parsed from the firm's `features` JSON column."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from eva.utils.logging import get_logger

logger = get_logger(__name__)

_toggle = TypeAdapter(bool)


class EvaNotificationSettings(BaseModel):
    """Per-event toggles for proactive notifications. Every event is off unless enabled."""

    model_config = ConfigDict(extra="allow")

    matter_status_change: bool = False
    new_document: bool = False
    upcoming_deadline: bool = False
    invoice_created: bool = False
    task_completed: bool = False

    @model_validator(mode="before")
    @classmethod
    def coerce_toggles(cls, data: Any) -> Any:
        """Read each toggle on its own; a bad value disables only that event."""
        if not isinstance(data, dict):
            return data
        toggles = {}
        for event_type, value in data.items():
            try:
                toggles[event_type] = _toggle.validate_python(value) if value is not None else False
            except ValidationError:
                logger.warning(f"Invalid notification toggle {event_type}={value!r}, treating as disabled")
                toggles[event_type] = False
        return toggles

    def is_enabled(self, event_type: str) -> bool:
        if event_type in type(self).model_fields:
            return bool(getattr(self, event_type))
        return bool((self.model_extra or {}).get(event_type, False))


class FirmFeatures(BaseModel):
    """Versioned feature configuration of a law firm."""

    model_config = ConfigDict(extra="allow")

    version: int = 1
    eva_notifications: EvaNotificationSettings = Field(default_factory=EvaNotificationSettings)

    @classmethod
    def from_column(cls, raw: dict[str, Any] | None) -> "FirmFeatures":
        """Parse the raw column value, falling back to defaults when it is malformed."""
        try:
            return cls.model_validate(raw or {})
        except ValidationError as e:
            logger.warning(f"Malformed firm features, using defaults: {e}")
            return cls()

    def is_notification_enabled(self, event_type: str) -> bool:
        return self.eva_notifications.is_enabled(event_type)
