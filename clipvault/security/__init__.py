"""Security primitives used by clipvault."""

from .cipher import PasswordCipher
from .passwords import prompt_confirmed, resolve_master_password

__all__ = ["PasswordCipher", "prompt_confirmed", "resolve_master_password"]
