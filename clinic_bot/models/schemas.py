"""
Pydantic schemas for the WhatsApp bot.

Inbound webhook messages are normalised into InboundMessage. Each flow keeps
its in-progress data in a typed context model that is dumped to the JSON
`context` column of the conversation row.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InboundType(str, Enum):
    TEXT = "text"
    INTERACTIVE = "interactive"
    UNSUPPORTED = "unsupported"


class InboundMessage(BaseModel):
    """Normalised inbound message (text body or button/list reply id)."""

    phone: str = Field(..., description="Sender phone (digits)")
    message_id: Optional[str] = Field(None, description="WhatsApp message id (wamid)")
    timestamp: Optional[str] = None
    type: InboundType = InboundType.TEXT
    content: str = ""
    title: Optional[str] = Field(None, description="Title of the tapped button/row")


class FlowContext(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @classmethod
    def load(cls, raw: Optional[dict]):
        return cls.model_validate(raw or {})

    def dump(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class BookingContext(FlowContext):
    name: Optional[str] = None
    email: Optional[str] = None
    reason: Optional[str] = None
    date: Optional[str] = None  # ISO date, clinic local
    formatted_date: Optional[str] = None
    time: Optional[str] = None  # HH:MM, clinic local
    formatted_time: Optional[str] = None


class StatusContext(FlowContext):
    pass


class AppointmentChoice(BaseModel):
    """One row of the selection list, kept so a typed number can resolve it."""

    id: str
    date: str
    status: str
    formatted_date: str
    reason: Optional[str] = None


class CancelContext(FlowContext):
    user_id: Optional[str] = None
    appointments: List[AppointmentChoice] = []
    selected_appointment_id: Optional[str] = None


class RescheduleContext(CancelContext):
    new_date: Optional[str] = None
    new_formatted_date: Optional[str] = None
    new_time: Optional[str] = None
    new_formatted_time: Optional[str] = None


class SendMessageRequest(BaseModel):
    """Admin/system outbound send: plain `message`, or a typed notification (`type` + `params`)."""

    to: Optional[str] = None
    message: Optional[str] = None
    type: Optional[str] = None
    params: Optional[Dict[str, Any]] = None
