#!/usr/bin/env python3
"""Plaid API setup script.

Validates Plaid credentials by requesting a link token from the chosen
environment. Bank accounts themselves are linked in the browser through
Plaid Link, not through this script.

Usage:
    1. Sign up at https://dashboard.plaid.com/
    2. Copy your client_id and secret from Developers > Keys
    3. Run this script and follow the prompts
    4. Add the printed values to backend/.env or store them in the keychain
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from integrations.exceptions import IntegrationError  # noqa: E402
from integrations.plaid_client import PlaidClient  # noqa: E402

ENVIRONMENT_CHOICES = {"1": "sandbox", "2": "development", "3": "production"}


def _offer_keychain_store(credentials: dict[str, str]) -> None:
    """Prompt the user to store credentials in the OS keychain."""
    from services.credential_manager import store_integration_credentials

    answer = input("\nStore these credentials in the OS keychain? [Y/n] ").strip().lower()
    if answer in ("", "y", "yes"):
        failed = store_integration_credentials("plaid", credentials)
        for key in credentials:
            if key in failed:
                print(f"  Failed to store {key}")
            else:
                print(f"  Stored {key} in keychain")
    else:
        print("  Skipped keychain storage.")


def validate_credentials(client_id: str, secret: str, env: str) -> str:
    """Create a throwaway link token to prove the credentials work.

    Returns:
        The link token Plaid issued.

    Raises:
        IntegrationError: If Plaid rejects the request.
    """
    client = PlaidClient(client_id=client_id, secret=secret, environment=env)
    return client.create_link_token("setup-test")


def main():
    """Prompt for credentials and validate them."""
    print("DoughJo - Plaid API Setup")
    print("=" * 50)
    print()

    client_id = input("Enter your Plaid client_id: ").strip()
    if not client_id:
        print("Error: No client_id provided")
        sys.exit(1)

    secret = input("Enter your Plaid secret: ").strip()
    if not secret:
        print("Error: No secret provided")
        sys.exit(1)

    print()
    print("Choose environment:")
    print("  1. sandbox (fake institutions and data)")
    print("  2. development (real institutions, limited Items)")
    print("  3. production")
    env_choice = input("Enter choice (1-3) [1]: ").strip() or "1"
    env = ENVIRONMENT_CHOICES.get(env_choice, "sandbox")

    print()
    print(f"Validating credentials against {env} environment...")

    try:
        validate_credentials(client_id, secret, env)
    except IntegrationError as e:
        print(f"Error: {e}")
        print()
        print("Common issues:")
        print("  - Incorrect client_id or secret")
        print("  - Keys do not belong to the selected environment")
        print("  - Network connectivity issue")
        sys.exit(1)

    print()
    print("Success! Add the following to backend/.env:")
    print()
    print(f"PLAID_CLIENT_ID={client_id}")
    print(f"PLAID_SECRET={secret}")
    print(f"PLAID_ENVIRONMENT={env}")

    _offer_keychain_store({
        "PLAID_CLIENT_ID": client_id,
        "PLAID_SECRET": secret,
    })


if __name__ == "__main__":
    main()
