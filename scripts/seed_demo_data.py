"""Seed demo inventory for the configured operator.

Usage:
    uv run python -m scripts.seed_demo_data
"""

import asyncio
import logging
import sys

from src.inventory.repository import InventoryRepository
from src.inventory.seed import seed_demo_data
from src.storage.client import StorageError
from src.storage.session import SessionClient, SessionError

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
)


async def main() -> None:
    sessions = SessionClient.from_settings()
    try:
        session = await sessions.sign_in_operator()
    except SessionError as e:
        print(f"Failed to sign in: {e}", file=sys.stderr)
        sys.exit(1)

    repository = InventoryRepository(sessions.storage(), user_id=session["user"]["id"])
    try:
        seeded = await seed_demo_data(repository)
    except StorageError as e:
        print(f"Seeding failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        await sessions.sign_out()

    print("Demo data seeded successfully" if seeded else "Demo data already exists")


if __name__ == "__main__":
    asyncio.run(main())
