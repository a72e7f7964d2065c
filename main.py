"""Command-line interface for the user creation console."""

from __future__ import annotations
import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional, Sequence

from useradmin.backend import UserBackendClient
from useradmin.config import BackendConfig, load_config_from_env
from useradmin.form import UserCreationForm
from useradmin.models import OptionPair
from useradmin.notifications import NotificationLog

logger = logging.getLogger("useradmin.main")

_DEFAULT_HOST = "127.0.0.1"
_DEFAULT_PORT = 8000


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User creation console")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the user creation web interface")
    serve_parser.add_argument("--host", default=_DEFAULT_HOST, help="Bind address for the web interface")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=_DEFAULT_PORT,
        help=f"Port for the web interface (default: {_DEFAULT_PORT})",
    )

    subparsers.add_parser("options", help="List the profile and role options offered by the backend")

    create_parser = subparsers.add_parser("create", help="Submit a single user creation request")
    create_parser.add_argument("--first-name", default="", help="Given name of the new user")
    create_parser.add_argument("--last-name", default="", help="Family name of the new user")
    create_parser.add_argument("--alias", default="", help="Short alias for the new user")
    create_parser.add_argument("--username", default="", help="Login name for the new user")
    create_parser.add_argument("--email", default="", help="Email address of the new user")
    create_parser.add_argument("--role-id", default="", help="Identifier of the role to assign")
    create_parser.add_argument(
        "--profile-id",
        default="",
        help="Identifier of the profile to select (not sent with the creation request)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "options", "create"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _serve(*, host: str, port: int) -> None:
    from useradmin.web import create_app
    import uvicorn

    logger.info("Starting user creation console on http://%s:%s", host, port)
    app = create_app()
    uvicorn.run(app, host=host, port=port, log_level="info")


def _format_options(title: str, options: Optional[List[OptionPair]]) -> List[str]:
    if options is None:
        return [f"{title}: unavailable"]
    if not options:
        return [f"{title}: none"]
    lines = [f"{title}:"]
    for option in options:
        lines.append(f"  {option.value:<24}  {option.label}")
    return lines


async def _show_options(config: BackendConfig) -> None:
    async with UserBackendClient(config) as backend:
        form = UserCreationForm(backend, NotificationLog())
        await form.load_options()

    for line in _format_options("Profiles", form.profile_options):
        print(line)
    for line in _format_options("Roles", form.role_options):
        print(line)


async def _create_user(config: BackendConfig, args: argparse.Namespace) -> bool:
    notifications = NotificationLog()

    async with UserBackendClient(config) as backend:
        form = UserCreationForm(backend, notifications)
        form.set_field("firstName", args.first_name)
        form.set_field("lastName", args.last_name)
        form.set_field("alias", args.alias)
        form.set_field("username", args.username)
        form.set_field("email", args.email)
        form.set_profile(args.profile_id)
        form.set_role(args.role_id)
        form.submit()
        await form.wait_pending()

    succeeded = True
    for entry in notifications.consume():
        notification = entry.notification
        print(f"{notification.title}: {notification.message}")
        if notification.variant == "error":
            succeeded = False
    return succeeded


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        _serve(host=args.host, port=args.port)
        return

    try:
        config = load_config_from_env(os.environ)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    if args.command == "options":
        asyncio.run(_show_options(config))
    elif args.command == "create":
        if not asyncio.run(_create_user(config, args)):
            raise SystemExit(1)


if __name__ == "__main__":
    main()
