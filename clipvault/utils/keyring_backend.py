"""System keyring access for the store-wide master password."""

from __future__ import annotations

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from ..errors import PasswordUnavailableError

logger = logging.getLogger(__name__)

MASTER_USERNAME = "master"


def load_master_password(service: str) -> Optional[str]:
    """Return the remembered master password, or ``None``.

    A keyring without a usable backend is treated as empty so that the
    caller can fall back to prompting.
    """

    try:
        return keyring.get_password(service, MASTER_USERNAME)
    except KeyringError:
        logger.debug("keyring lookup failed for service %s", service, exc_info=True)
        return None


def remember_master_password(service: str, password: str) -> None:
    try:
        keyring.set_password(service, MASTER_USERNAME, password)
    except KeyringError as exc:
        raise PasswordUnavailableError(f"could not write to the system keyring: {exc}") from exc


def forget_master_password(service: str) -> bool:
    """Remove the remembered password; return ``False`` when none was stored."""

    try:
        keyring.delete_password(service, MASTER_USERNAME)
    except PasswordDeleteError:
        return False
    except KeyringError as exc:
        raise PasswordUnavailableError(f"could not update the system keyring: {exc}") from exc
    return True


__all__ = [
    "MASTER_USERNAME",
    "forget_master_password",
    "load_master_password",
    "remember_master_password",
]
