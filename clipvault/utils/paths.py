"""Filesystem path helpers for clipvault state."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional


def _override(variable: str, environ: Optional[Mapping[str, str]]) -> Optional[Path]:
    env = os.environ if environ is None else environ
    value = env.get(variable)
    if value:
        return Path(value).expanduser().resolve()
    return None


def state_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the directory used for clipvault's own state.

    The location defaults to ``~/.clipvault`` but can be overridden via the
    ``CLIPVAULT_STATE_DIR`` environment variable. The path is expanded and
    resolved so callers always receive an absolute location.
    """

    return _override("CLIPVAULT_STATE_DIR", environ) or Path.home() / ".clipvault"


def store_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the directory holding one ciphertext file per secret."""

    return _override("CLIPVAULT_STORE_DIR", environ) or Path.home() / ".secrets"


__all__ = ["state_dir", "store_dir"]
