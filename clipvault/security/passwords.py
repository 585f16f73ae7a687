"""Collecting secret values and the master password from the user."""

from __future__ import annotations

import getpass
import os
from typing import Callable, Mapping, Optional

from ..config import PASSWORD_ENV
from ..errors import PasswordUnavailableError
from ..utils import keyring_backend

Prompt = Callable[[str], str]
Notify = Callable[[str], None]


def prompt_confirmed(
    label: str,
    *,
    prompt: Prompt = getpass.getpass,
    notify: Optional[Notify] = None,
    max_attempts: Optional[int] = None,
) -> str:
    """Read a value twice without echo until both entries agree.

    Empty entries are rejected and asked for again. ``max_attempts`` of
    ``None`` retries forever.
    """

    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        attempts += 1
        first = prompt(f"{label}: ")
        if not first:
            if notify:
                notify(f"{label} must not be empty, try again.")
            continue
        second = prompt(f"Confirm {label.lower()}: ")
        if first == second:
            return first
        if notify:
            notify("Entries do not match, try again.")
    raise PasswordUnavailableError(f"{label.lower()} was not confirmed after {attempts} attempts")


def resolve_master_password(
    keyring_service: str,
    *,
    confirm: bool = False,
    environ: Optional[Mapping[str, str]] = None,
    prompt: Prompt = getpass.getpass,
    notify: Optional[Notify] = None,
) -> bytes:
    """Return the store-wide master password as bytes.

    Sources in order: ``CLIPVAULT_PASSWORD``, the system keyring, then an
    interactive prompt (asked twice when *confirm* is set).
    """

    env = os.environ if environ is None else environ
    password = env.get(PASSWORD_ENV) or keyring_backend.load_master_password(keyring_service)
    if not password:
        if confirm:
            password = prompt_confirmed("Master password", prompt=prompt, notify=notify)
        else:
            password = prompt("Master password: ")
    if not password:
        raise PasswordUnavailableError("an empty master password is not allowed")
    return password.encode("utf-8")


__all__ = ["prompt_confirmed", "resolve_master_password"]
