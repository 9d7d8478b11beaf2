"""Command-line interface for the user management service."""

from __future__ import annotations
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence, Set


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


_bootstrap_virtualenv()

from usercrud.client import UsersAPIClient  # noqa: E402
from usercrud.config import Settings, load_settings  # noqa: E402
from usercrud.database import Database  # noqa: E402
from usercrud.manager import ClientStateManager  # noqa: E402
from usercrud.models import USER_FIELDS, Draft  # noqa: E402
from usercrud.state import ClientState  # noqa: E402

logger = logging.getLogger("usercrud.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User management service utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: USERCRUD_CONFIG)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the users database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: 0.0.0.0)")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP service (default: 5000)",
    )

    admin_parser = subparsers.add_parser(
        "admin", help="Launch the interactive administration console"
    )
    admin_parser.add_argument(
        "--api-url",
        default=None,
        help="Base URL of a running users API (default: http://localhost:5000/api)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "admin", "init-db"}

    global_args: list[str] = []
    if len(args_list) >= 2 and args_list[0] == "--config":
        global_args, args_list = args_list[:2], args_list[2:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(global_args + args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(global_args + args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(global_args + args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, database: Database, settings: Settings, host: str | None, port: int | None) -> None:
    from usercrud.service import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting user management service on http://%s:%s", bind_host, bind_port)

    app = create_app(database=database, settings=settings)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")


class ConsoleView:
    """Text rendering of the client state for the administration console."""

    def __init__(self) -> None:
        self._shown: Set[int] = set()

    def on_change(self, state: ClientState) -> None:
        for message in state.messages():
            if message.token in self._shown:
                continue
            self._shown.add(message.token)
            prefix = "OK" if message.kind == "success" else "ERROR"
            print(f"[{prefix}] {message.text}")

    @staticmethod
    def render_users(state: ClientState) -> None:
        if state.loading:
            print("Loading users...")
            return
        if not state.records:
            print("No users found.")
            return

        print(f"{len(state.records)} user(s) found:")
        print(f"{'ID':<24}  {'Name':<24}  {'Email':<32}  Created")
        print("-" * 96)
        for user in state.records:
            created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
            print(f"{user.id:<24}  {user.name:<24}  {user.email:<32}  {created}")
            extras = [
                f"{label}: {value}"
                for label, value in (
                    ("phone", user.phone),
                    ("age", user.age),
                    ("address", user.address),
                )
                if value is not None
            ]
            if extras:
                print(" " * 26 + ", ".join(extras))


async def _prompt(text: str) -> str:
    return (await asyncio.to_thread(input, text)).strip()


_CLEAR_FIELD = "-"


async def _prompt_draft(current: Optional[Draft] = None) -> Draft:
    """Ask for each field; blank keeps the shown value and ``-`` clears it."""

    values = current.to_payload() if current else {field: "" for field in USER_FIELDS}
    for field in USER_FIELDS:
        default = values[field]
        suffix = f" [{default}]" if default else ""
        answer = await _prompt(f"{field.capitalize()}{suffix}: ")
        if answer == _CLEAR_FIELD:
            values[field] = ""
        elif answer:
            values[field] = answer
    return Draft(**values)


async def _admin_console(api_url: str, settings: Settings) -> None:
    """Provide an interactive management console for administrators."""

    manager = ClientStateManager(
        UsersAPIClient(api_url),
        message_timeout=settings.message_timeout,
    )
    view = ConsoleView()
    unsubscribe = manager.subscribe(view.on_change)

    print("User Management Administration Console")
    print(f"Connected to {api_url}. Press Ctrl+C at any time to exit.\n")

    try:
        await manager.mount()
        while True:
            print("Select an option:")
            print("  1) List all users")
            print("  2) Add a new user")
            print("  3) Edit a user")
            print("  4) Delete a user")
            print("  5) Exit")

            choice = await _prompt("Enter choice [1-5]: ")

            if choice == "1":
                await manager.reload()
                view.render_users(manager.state)
            elif choice == "2":
                manager.cancel()
                manager.set_draft(await _prompt_draft())
                await manager.submit()
            elif choice == "3":
                user_id = await _prompt("User ID: ")
                if not manager.edit(user_id):
                    print("No user with that ID is listed. Refresh the list and try again.")
                else:
                    print("Press Enter to keep a value, or '-' to clear it.")
                    manager.set_draft(await _prompt_draft(manager.state.draft))
                    await manager.submit()
                    if manager.state.editing_id is not None:
                        manager.cancel()
            elif choice == "4":
                user_id = await _prompt("User ID: ")
                answer = await _prompt("Are you sure you want to delete this user? [y/N]: ")
                if not await manager.delete(user_id, confirmed=answer.lower() in {"y", "yes"}):
                    print("Deletion cancelled.")
            elif choice == "5":
                print("Goodbye!")
                return
            else:
                print("Invalid selection. Please choose a number from the menu.\n")

            print()
    finally:
        unsubscribe()
        manager.close()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings(Path(args.config) if args.config else None)

    if args.command == "serve":
        database = _initialise_database(settings)
        _serve(
            database=database,
            settings=settings,
            host=args.host,
            port=args.port,
        )
    elif args.command == "admin":
        api_url = args.api_url or settings.console_api_url
        try:
            asyncio.run(_admin_console(api_url, settings))
        except KeyboardInterrupt:
            print("\nExiting administration console.")
    elif args.command == "init-db":
        _initialise_database(settings)
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
