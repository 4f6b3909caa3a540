"""
Schemas for the inbound SMS webhook.
"""
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class InboundSMS(BaseModel):
    """An SMS received by the transport and handed to the gateway."""

    phone_number: str = Field(..., description="Sender phone number in E.164 format")
    content: str = Field("", max_length=1600, description="SMS message body")
    message_id: Optional[str] = Field(None, description="Transport message identifier")

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        """Validate phone number format."""
        v = v.strip()
        if not v.startswith("+"):
            raise ValueError("Phone number must be in E.164 format (e.g., +1234567890)")
        return v


class SMSReply(BaseModel):
    """The single plain-text reply for an inbound SMS."""

    reply: str = Field(..., description="Reply text for the transport to deliver")
    command: str = Field(..., description="Command family the message parsed to")
    correlation_id: Optional[str] = Field(None, description="Correlation ID of the request")
