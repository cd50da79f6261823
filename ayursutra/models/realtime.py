# ayursutra/models/realtime.py

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ayursutra.lib import utc_now_iso


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class InboundEvent(str, Enum):
    NOTIFICATION = "notification"
    BOOKING_UPDATE = "booking_update"
    WELLNESS_UPDATE = "wellness_update"


class LifecycleEvent(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CONNECTION_ERROR = "connection_error"
    CONNECTION_STATUS = "connection_status"
    SYSTEM_STATUS = "system_status"


class SystemStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"


class OutboundMessage(str, Enum):
    JOIN = "join"
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    BOOKING_UPDATE = "booking_update"
    WELLNESS_UPDATE = "wellness_update"


class BookingUpdateMessage(BaseModel):
    user_id: str = Field(..., alias="userId")
    message: str
    timestamp: str = Field(default_factory=utc_now_iso)

    class Config:
        populate_by_name = True


class WellnessUpdateMessage(BaseModel):
    practitioner_id: str = Field(..., alias="practitionerId")
    patient_name: str = Field(..., alias="patientName")
    timestamp: str = Field(default_factory=utc_now_iso)

    class Config:
        populate_by_name = True


class ConnectionInfo(BaseModel):
    """Snapshot of the realtime session for status surfaces."""

    is_connected: bool = Field(False, alias="isConnected")
    socket_id: Optional[str] = Field(None, alias="socketId")
    system_status: SystemStatus = Field(SystemStatus.OFFLINE, alias="systemStatus")
    last_connected: Optional[str] = Field(None, alias="lastConnected")
    user_id: Optional[str] = Field(None, alias="userId")

    class Config:
        populate_by_name = True
