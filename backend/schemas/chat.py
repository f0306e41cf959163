"""Schemas for the chat endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    user_id: str = Field(min_length=1)
    message: str = Field(min_length=1)
    name: str | None = None
    xp: int = 0


class ChatResponse(BaseModel):
    response: str
    source: str


class ChatMessageResponse(BaseModel):
    """One stored chat message."""

    id: str
    message: str
    is_user: bool
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)
