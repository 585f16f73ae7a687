"""Command line surface for clipvault."""

from __future__ import annotations

import argparse
import dataclasses
import getpass
import math
import sys
import time
from typing import Callable, Dict, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import Settings
from .errors import AlreadyExistsError, ClipVaultError, NotFoundError, PasswordUnavailableError
from .security.passwords import prompt_confirmed, resolve_master_password
from .service import SecretService
from .utils import keyring_backend, logbook

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

HELP_WORDS = {"help", "--help", "-h"}
EXPIRE_COMMAND = "expire-clipboard"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipvault",
        description="Encrypted secret store that copies secrets to a self-clearing clipboard.",
    )
    parser.add_argument("--version", action="store_true", help="Display version information and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Mirror the diagnostic log to stderr")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    subparsers.add_parser("list", help="List secret names, one per line")

    get = subparsers.add_parser("get", help="Copy a secret to the clipboard")
    get.add_argument("name")
    get.add_argument("--ttl", type=float, default=None, help="Seconds before the clipboard is cleared")

    set_ = subparsers.add_parser("set", help="Store a new secret (prompts for the value)")
    set_.add_argument("name")

    delete = subparsers.add_parser("delete", help="Remove a secret")
    delete.add_argument("name")

    subparsers.add_parser("clear", help="Empty the clipboard now")
    subparsers.add_parser("remember", help="Save the master password in the system keyring")
    subparsers.add_parser("forget", help="Remove the master password from the system keyring")
    subparsers.add_parser("help", help="Show this message")

    expire = subparsers.add_parser(EXPIRE_COMMAND)
    expire.add_argument("generation", type=int)
    expire.add_argument("--after", type=float, default=0.0)

    return parser


def build_service(settings: Settings) -> SecretService:
    return SecretService.from_settings(settings)


def _read_hidden(prompt: str) -> str:
    try:
        return getpass.getpass(prompt)
    except EOFError as exc:
        raise PasswordUnavailableError("no input available to read from") from exc


def _notify(message: str) -> None:
    err_console.print(escape(message))


def _master_password(settings: Settings, *, confirm: bool = False) -> bytes:
    return resolve_master_password(
        settings.keyring_service,
        confirm=confirm,
        prompt=_read_hidden,
        notify=_notify,
    )


def _handle_list(args: argparse.Namespace, settings: Settings) -> int:
    for name in build_service(settings).list():
        console.print(escape(name), soft_wrap=True)
    return 0


def _handle_get(args: argparse.Namespace, settings: Settings) -> int:
    if args.ttl is not None:
        if not math.isfinite(args.ttl) or args.ttl <= 0:
            raise ClipVaultError("--ttl must be a finite number greater than zero")
        settings = dataclasses.replace(settings, clipboard_ttl=args.ttl)
    service = build_service(settings)
    if not service.store.exists(args.name):
        # Checked before prompting so a typo does not cost a password entry.
        raise NotFoundError(args.name)
    ttl = service.get(args.name, _master_password(settings))
    console.print(f"Copied {escape(args.name)} to clipboard, clearing in {ttl:g} seconds.")
    return 0


def _handle_set(args: argparse.Namespace, settings: Settings) -> int:
    service = build_service(settings)
    if service.store.exists(args.name):
        raise AlreadyExistsError(args.name)
    value = prompt_confirmed("Secret value", prompt=_read_hidden, notify=_notify)
    password = _master_password(settings, confirm=True)
    service.set(args.name, value.encode("utf-8"), password)
    console.print(f"Stored secret {escape(args.name)}.")
    return 0


def _handle_delete(args: argparse.Namespace, settings: Settings) -> int:
    build_service(settings).delete(args.name)
    console.print(f"Deleted secret {escape(args.name)}.")
    return 0


def _handle_clear(args: argparse.Namespace, settings: Settings) -> int:
    build_service(settings).clear_clipboard()
    console.print("Clipboard cleared.")
    return 0


def _handle_remember(args: argparse.Namespace, settings: Settings) -> int:
    password = prompt_confirmed("Master password", prompt=_read_hidden, notify=_notify)
    keyring_backend.remember_master_password(settings.keyring_service, password)
    console.print(f"Master password saved to the system keyring ({escape(settings.keyring_service)}).")
    return 0


def _handle_forget(args: argparse.Namespace, settings: Settings) -> int:
    if keyring_backend.forget_master_password(settings.keyring_service):
        console.print("Master password removed from the system keyring.")
    else:
        console.print("No master password was stored in the system keyring.")
    return 0


def _handle_expire(args: argparse.Namespace, settings: Settings) -> int:
    if args.after > 0:
        time.sleep(args.after)
    build_service(settings).clipboard.expire(args.generation)
    return 0


HANDLERS: Dict[str, Callable[[argparse.Namespace, Settings], int]] = {
    "list": _handle_list,
    "get": _handle_get,
    "set": _handle_set,
    "delete": _handle_delete,
    "clear": _handle_clear,
    "remember": _handle_remember,
    "forget": _handle_forget,
    EXPIRE_COMMAND: _handle_expire,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    arguments: List[str] = list(sys.argv[1:] if argv is None else argv)
    parser = _build_parser()
    if not arguments or arguments[0] in HELP_WORDS:
        parser.print_help()
        return 0
    first = arguments[0]
    if not first.startswith("-") and first not in HANDLERS:
        err_console.print(f"[red]error:[/] unknown command {escape(repr(first))}")
        err_console.print("Run 'clipvault --help' for usage.")
        return 1
    try:
        args = parser.parse_args(arguments)
    except SystemExit as exc:
        return 0 if not exc.code else 1
    if args.version:
        console.print(f"clipvault {__version__}")
        return 0
    if args.command is None or args.command == "help":
        parser.print_help()
        return 0
    try:
        if args.verbose:
            logbook.enable_console()
        settings = Settings.from_env()
        return HANDLERS[args.command](args, settings)
    except ClipVaultError as exc:
        err_console.print(f"[red]error:[/] {escape(str(exc))}")
        return exc.exit_code
    except KeyboardInterrupt:
        err_console.print("Aborted.")
        return 1
    finally:
        logbook.shutdown()


__all__ = ["build_service", "main"]
