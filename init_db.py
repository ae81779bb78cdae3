#!/usr/bin/env python3
"""
Initialize the scram_credentials schema and register a test user.
Run this script once before authenticating against the MySQL store.
"""

import secrets
from dotenv import load_dotenv
from scram.common.config import ScramSettings
from scram.server import ServerSession
from scram.storage.db import init_schema, MySQLCredentialStore

# Load environment variables from .env file if it exists
load_dotenv()

def main():
    settings = ScramSettings.from_env()

    print("Initializing database schema...")
    init_schema()
    print("✓ Database schema created")

    print(f"\nRegistering test user (alice/alice123, {settings.iterations} iterations)...")
    session = ServerSession(MySQLCredentialStore(), settings)
    session.register("alice", "alice123", secrets.token_bytes(settings.salt_length), settings.iterations)
    print("✓ User 'alice' registered (StoredKey/ServerKey only, no password kept)")

    print("\nDatabase initialization complete!")

if __name__ == "__main__":
    main()
