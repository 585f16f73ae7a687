"""Exception hierarchy shared by the clipvault components."""

from __future__ import annotations


class ClipVaultError(Exception):
    """Base class for every reported failure.

    ``exit_code`` is the process status the CLI returns when the error reaches
    the command boundary.
    """

    exit_code = 1


class InvalidNameError(ClipVaultError):
    """Raised when a secret name is empty or could escape the store."""

    def __init__(self, name: object) -> None:
        super().__init__(f"invalid secret name {name!r}")
        self.name = name


class AlreadyExistsError(ClipVaultError):
    def __init__(self, name: str) -> None:
        super().__init__(f"secret {name!r} already exists")
        self.name = name


class NotFoundError(ClipVaultError):
    def __init__(self, name: str) -> None:
        super().__init__(f"no secret named {name!r}")
        self.name = name


class WrongPasswordOrCorruptError(ClipVaultError):
    """Raised when a ciphertext cannot be authenticated.

    A wrong password and a damaged blob are reported identically.
    """

    def __init__(self, message: str = "wrong password") -> None:
        super().__init__(message)


class WrongPasswordError(WrongPasswordOrCorruptError):
    def __init__(self, name: str) -> None:
        super().__init__("wrong password")
        self.name = name


class StoreIOError(ClipVaultError):
    """Raised when the filesystem refuses a store operation."""


class ClipboardUnavailableError(ClipVaultError):
    """Raised when the platform clipboard cannot be written."""


class PasswordUnavailableError(ClipVaultError):
    """Raised when no usable master password could be obtained."""


__all__ = [
    "AlreadyExistsError",
    "ClipVaultError",
    "ClipboardUnavailableError",
    "InvalidNameError",
    "NotFoundError",
    "PasswordUnavailableError",
    "StoreIOError",
    "WrongPasswordError",
    "WrongPasswordOrCorruptError",
]
