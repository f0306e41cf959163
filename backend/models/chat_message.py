"""ChatMessage model - one side of a chat turn."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String, Text

from database import Base
from models.utils import generate_uuid


class ChatMessage(Base):
    """A message from the user, or the assistant's reply to one."""

    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=False, index=True)
    message = Column(Text, nullable=False)
    is_user = Column(Boolean, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        sender = "user" if self.is_user else "assistant"
        return f"<ChatMessage {sender} user={self.user_id} at={self.timestamp}>"
