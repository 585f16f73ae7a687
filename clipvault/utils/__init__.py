"""Utility helpers exposed by clipvault."""

from .keyring_backend import forget_master_password, load_master_password, remember_master_password
from .paths import state_dir, store_dir

__all__ = [
    "forget_master_password",
    "load_master_password",
    "remember_master_password",
    "state_dir",
    "store_dir",
]
