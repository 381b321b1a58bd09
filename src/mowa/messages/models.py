"""Message data models based on Pydantic."""

from __future__ import annotations

from pydantic import BaseModel, Field


class MessageRequest(BaseModel):
    to: list[str] = Field(default_factory=list, description="Phone numbers or configured group names.")
    message: str = Field(default="", description="Text to send.")


class MessageResult(BaseModel):
    """Delivery outcome for a single recipient."""

    recipient: str
    success: bool = False
    error: str | None = None


class MessageResponse(BaseModel):
    results: list[MessageResult] = Field(default_factory=list)
