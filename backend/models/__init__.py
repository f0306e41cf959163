"""SQLAlchemy ORM models."""

from .bank_account import BankAccount
from .chat_message import ChatMessage
from .utils import generate_uuid

__all__ = ["BankAccount", "ChatMessage", "generate_uuid"]
