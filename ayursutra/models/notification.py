# ayursutra/models/notification.py

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ayursutra.lib import generate_notification_id, utc_now_iso

DEFAULT_TITLE = "New Notification"
BOOKING_TITLE = "Booking Update"
WELLNESS_TITLE = "Wellness Update"
WELLNESS_DEFAULT_MESSAGE = "New wellness check-in received"


class NotificationType(str, Enum):
    BOOKING = "booking"
    WELLNESS = "wellness"
    SYSTEM = "system"
    ERROR = "error"
    SUCCESS = "success"
    INFO = "info"


# (icon, css class) per known category; anything else falls back to DEFAULT_PRESENTATION
PRESENTATION = {
    NotificationType.BOOKING: ("📅", "notification-booking"),
    NotificationType.WELLNESS: ("🧘", "notification-wellness"),
    NotificationType.SYSTEM: ("⚙️", "notification-system"),
    NotificationType.ERROR: ("⚠️", "notification-error"),
    NotificationType.SUCCESS: ("✅", "notification-success"),
}
DEFAULT_PRESENTATION = ("🔔", "notification-default")


class NotificationRecord(BaseModel):
    id: str = Field(default_factory=generate_notification_id)
    title: str = DEFAULT_TITLE
    message: str = ""
    type: str = NotificationType.INFO.value
    timestamp: str = Field(default_factory=utc_now_iso)
    is_read: bool = Field(False, alias="isRead")
    payload: dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True

    @property
    def category(self) -> Optional[NotificationType]:
        """Known category for this record, or None for server types we don't recognise."""
        try:
            return NotificationType(self.type)
        except ValueError:
            return None

    @property
    def icon(self) -> str:
        return PRESENTATION.get(self.category, DEFAULT_PRESENTATION)[0]

    @property
    def css_class(self) -> str:
        return PRESENTATION.get(self.category, DEFAULT_PRESENTATION)[1]


def _as_text(value) -> Optional[str]:
    return None if value is None else str(value)


class NotificationEvent(BaseModel):
    """Payload of a generic `notification` server event.

    Each field degrades on its own: a value of the wrong shape becomes None
    so the remaining server fields are still used.
    """

    title: Optional[str] = None
    message: str = ""
    type: Optional[str] = None
    timestamp: Optional[str] = None
    data: Optional[dict[str, Any]] = None

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, value):
        return _as_text(value) or ""

    @field_validator("title", "type", "timestamp", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _as_text(value)

    @field_validator("data", mode="before")
    @classmethod
    def coerce_data(cls, value):
        if not isinstance(value, dict):
            return None
        return {str(key): item for key, item in value.items()}


class BookingUpdateEvent(BaseModel):
    message: str = ""
    timestamp: Optional[str] = None

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, value):
        return _as_text(value) or ""

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, value):
        return _as_text(value)


class WellnessUpdateEvent(BaseModel):
    message: Optional[str] = None
    timestamp: Optional[str] = None
    patient_name: Optional[str] = Field(None, alias="patientName")

    class Config:
        populate_by_name = True

    @field_validator("message", "timestamp", "patient_name", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _as_text(value)
