"""API route handlers."""
from . import accounts, chat, plaid, session

__all__ = ["accounts", "chat", "plaid", "session"]
