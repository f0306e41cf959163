"""External API integrations.

This package contains:
- Plaid client: link tokens, public token exchange, accounts/balances
- Supabase auth client: remote sign-out for expired sessions
- OpenAI chat client: completions for the in-app assistant
- Exceptions: typed errors shared by all three
"""

from integrations.exceptions import (
    ConfigurationError,
    ExchangeError,
    IntegrationError,
    PersistenceError,
    UpstreamError,
)

__all__ = [
    "ConfigurationError",
    "ExchangeError",
    "IntegrationError",
    "PersistenceError",
    "UpstreamError",
]
