"""Wire models for the back-office API.

Responses are validated against these models at the service boundary rather
than inspected for alternative shapes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Appointment(BaseModel):
    """Appointment record as stored by the backend."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id", description="Backend identifier")
    title: str
    date: datetime
    location: Optional[str] = None
    contact_name: Optional[str] = Field(default=None, alias="contactName")
    contact_email: Optional[str] = Field(default=None, alias="contactEmail")
    contact_phone: Optional[str] = Field(default=None, alias="contactPhone")
    status: Optional[str] = None

    @field_serializer("date")
    def _serialize_date(self, value: datetime) -> str:
        return value.isoformat()

    def notification_data(self) -> dict[str, Any]:
        """Fields the notification backend renders into messages."""
        return {
            "title": self.title,
            "date": self.date.isoformat(),
            "location": self.location,
            "contactName": self.contact_name,
        }


class AppointmentDraft(BaseModel):
    """Payload for creating an appointment; ``date`` is filled per occurrence."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: str
    date: datetime
    location: Optional[str] = None
    contact_name: Optional[str] = Field(default=None, alias="contactName")
    contact_email: Optional[str] = Field(default=None, alias="contactEmail")
    contact_phone: Optional[str] = Field(default=None, alias="contactPhone")

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(by_alias=True, exclude_none=True)
        payload["date"] = self.date.isoformat()
        return payload


class NotificationType(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    REMINDER = "reminder"


class PendingNotification(BaseModel):
    """Locally tracked notification state keyed by "<type>:<appointment id>"."""

    id: str
    type: NotificationType
    status: str
    timestamp: datetime
    details: Any = None

    model_config = ConfigDict(use_enum_values=True)


class Sprint(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")
    name: str
    status: Optional[str] = None
    project: Optional[str] = None
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")


class Project(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., alias="_id")
    name: str
    status: Optional[str] = None
    description: Optional[str] = None
