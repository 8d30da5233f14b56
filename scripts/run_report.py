"""Generate a security report for the configured operator and print it to stdout.

Usage:
    uv run python -m scripts.run_report
"""

import asyncio
import logging
import sys
from datetime import UTC, datetime

from src.inventory.repository import InventoryRepository
from src.report.generator import format_report_markdown
from src.report.loader import ReportLoader
from src.storage.session import SessionClient, SessionError

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)


async def main() -> None:
    """Sign in, generate and print the report."""
    sessions = SessionClient.from_settings()
    try:
        session = await sessions.sign_in_operator()
    except SessionError as e:
        print(f"Failed to sign in: {e}", file=sys.stderr)
        sys.exit(1)

    loader = ReportLoader(InventoryRepository(sessions.storage(), user_id=session["user"]["id"]))
    try:
        snapshot = await loader.refresh()
    finally:
        await sessions.sign_out()

    if loader.stale:
        print(f"Failed to fetch inventory: {loader.last_error}", file=sys.stderr)
        sys.exit(1)
    print(format_report_markdown(snapshot, generated_at=datetime.now(UTC).isoformat()))


if __name__ == "__main__":
    asyncio.run(main())
