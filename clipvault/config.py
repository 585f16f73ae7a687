"""Environment driven settings for clipvault."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ClipVaultError
from .utils.paths import state_dir, store_dir

CLIPBOARD_TTL_SECS = 30
DEFAULT_KDF_ITERATIONS = 600_000
DEFAULT_KEYRING_SERVICE = "clipvault"

PASSWORD_ENV = "CLIPVAULT_PASSWORD"


@dataclass(frozen=True)
class Settings:
    """Resolved runtime configuration.

    Every field has an environment override; see :meth:`from_env`.
    """

    store_dir: Path
    state_dir: Path
    clipboard_ttl: float = CLIPBOARD_TTL_SECS
    kdf_iterations: int = DEFAULT_KDF_ITERATIONS
    clipboard_backend: Optional[str] = None
    keyring_service: str = DEFAULT_KEYRING_SERVICE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        ttl = _positive_number(env, "CLIPVAULT_CLIPBOARD_TTL", float, CLIPBOARD_TTL_SECS)
        iterations = _positive_number(env, "CLIPVAULT_KDF_ITERATIONS", int, DEFAULT_KDF_ITERATIONS)
        return cls(
            store_dir=store_dir(env),
            state_dir=state_dir(env),
            clipboard_ttl=ttl,
            kdf_iterations=iterations,
            clipboard_backend=env.get("CLIPVAULT_CLIPBOARD") or None,
            keyring_service=env.get("CLIPVAULT_KEYRING_SERVICE") or DEFAULT_KEYRING_SERVICE,
        )


def _positive_number(env: Mapping[str, str], variable: str, kind, default):
    raw = env.get(variable)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = kind(raw)
    except ValueError as exc:
        raise ClipVaultError(f"{variable} must be a number, got {raw!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise ClipVaultError(f"{variable} must be a finite number greater than zero")
    return value


__all__ = [
    "CLIPBOARD_TTL_SECS",
    "DEFAULT_KDF_ITERATIONS",
    "DEFAULT_KEYRING_SERVICE",
    "PASSWORD_ENV",
    "Settings",
]
