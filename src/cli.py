"""Simple CLI REPL for the GRC portal.

Signs in with the configured operator identity (or prompts for one), then
answers commands against the operator's inventory.

Usage:
    uv run python -m src.cli
"""

import asyncio
import getpass
import logging
import sys

from src.config import get_settings
from src.inventory.models import label, mask_secret
from src.inventory.repository import NEWEST_FIRST, InventoryRepository
from src.report.generator import format_report_markdown
from src.report.loader import ReportLoader
from src.storage.client import StorageError
from src.storage.session import AuthEvent, Session, SessionClient, SessionError

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)

HELP = "Commands: report, credentials, addresses, remote, whoami, help, quit"


def _print_auth_event(event: AuthEvent, session: Session | None) -> None:
    if event == AuthEvent.SIGNED_IN and session is not None:
        print(f"Signed in as {session['user']['email'] or session['user']['id']}")
    elif event == AuthEvent.SIGNED_OUT:
        print("Signed out.")


async def _sign_in(sessions: SessionClient) -> None:
    settings = get_settings()
    if settings.operator_email and settings.operator_password:
        await sessions.sign_in_operator()
        return
    email = input("Email: ").strip()
    password = getpass.getpass("Password: ")
    await sessions.sign_in_with_password(email, password)


async def _list_credentials(repository: InventoryRepository) -> None:
    records = await repository.list_credentials(order=NEWEST_FIRST)
    if not records:
        print("No API keys stored.")
        return
    for r in records:
        print(
            f"  {r['name']:<30} {r['service']:<20} {label(r['environment']):<12} "
            f"{label(r['status']):<9} {mask_secret(r['secret_value'])}"
        )


async def _list_addresses(repository: InventoryRepository) -> None:
    records = await repository.list_addresses(order=NEWEST_FIRST)
    if not records:
        print("No IP addresses monitored.")
        return
    for r in records:
        print(
            f"  {r['address']:<18} {label(r['risk_level']):<9} {label(r['category']):<9} "
            f"{r['hostname'] or '-'}  {r['location'] or ''}"
        )


async def _list_remote(repository: InventoryRepository) -> None:
    records = await repository.list_remote_access()
    if not records:
        print("No SSH credentials stored.")
        return
    for r in records:
        state = "active" if r["is_active"] else "inactive"
        print(f"  {r['name']:<24} {r['username']}@{r['host']}:{r['port']}  {label(r['auth_type'])}  {state}")


async def run() -> None:
    """Run the interactive CLI loop."""
    print("GRC Portal (type 'quit' or Ctrl+C to exit)")
    print("=" * 50)

    sessions = SessionClient.from_settings()
    subscription = sessions.on_auth_state_change(_print_auth_event)

    try:
        await _sign_in(sessions)
    except SessionError as e:
        print(f"Sign-in failed: {e}")
        sys.exit(1)

    session = sessions.get_session()
    user_id = session["user"]["id"] if session else None
    repository = InventoryRepository(sessions.storage(), user_id=user_id)
    loader = ReportLoader(repository)
    print(HELP + "\n")

    try:
        while True:
            try:
                command = input("> ").strip().lower()
            except (KeyboardInterrupt, EOFError):
                print()
                break

            if not command:
                continue
            if command in ("quit", "exit", "q"):
                break

            try:
                if command == "report":
                    snapshot = await loader.refresh()
                    if loader.stale:
                        print(f"(showing last known report: {loader.last_error})")
                    print(format_report_markdown(snapshot))
                elif command == "credentials":
                    await _list_credentials(repository)
                elif command == "addresses":
                    await _list_addresses(repository)
                elif command == "remote":
                    await _list_remote(repository)
                elif command == "whoami":
                    user = await sessions.get_user()
                    print(f"  {user['email'] or user['id']}" if user else "  Not signed in.")
                else:
                    print(HELP)
            except (StorageError, SessionError) as e:
                print(f"\nError: {e}\n")
    finally:
        await sessions.sign_out()
        subscription.unsubscribe()
    print("Goodbye!")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
