"""On-disk collection of encrypted secrets, one file per name."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List

from .errors import AlreadyExistsError, InvalidNameError, NotFoundError, StoreIOError
from .utils import logbook

logger = logging.getLogger(__name__)

_FORBIDDEN = {"/", "\\", "\x00"} | {sep for sep in (os.sep, os.altsep) if sep}


def validate_name(name: object) -> str:
    """Return *name* unchanged if it is safe to use as a file name."""

    if not isinstance(name, str) or not name:
        raise InvalidNameError(name)
    if ".." in name or name.startswith(".") or any(char in name for char in _FORBIDDEN):
        raise InvalidNameError(name)
    return name


class SecretStore:
    """Persist ciphertext blobs below a single directory.

    The directory listing is the index; there is no manifest. Entries whose
    name starts with a dot are never secrets: they are in-flight temporary
    files or foreign hidden files, and :meth:`list` skips them.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        return self.root / validate_name(name)

    def list(self) -> List[str]:
        try:
            entries = list(self.root.iterdir())
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StoreIOError(f"cannot list {self.root}: {exc.strerror or exc}") from exc
        return sorted(entry.name for entry in entries if not entry.name.startswith(".") and entry.is_file())

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()

    def read(self, name: str) -> bytes:
        path = self._path(name)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(name) from exc
        except OSError as exc:
            raise StoreIOError(f"cannot read secret {name!r}: {exc.strerror or exc}") from exc

    def create(self, name: str, ciphertext: bytes) -> None:
        """Write a new entry atomically.

        The blob is written and fsynced under a temporary name, then linked
        into place. ``os.link`` refuses to replace an existing file, so the
        existence check and the publish are one step.
        """

        path = self._path(name)
        if path.exists():
            raise AlreadyExistsError(name)
        try:
            self.root.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.root)
        except OSError as exc:
            raise StoreIOError(f"cannot prepare {self.root}: {exc.strerror or exc}") from exc
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(ciphertext)
                handle.flush()
                os.fsync(handle.fileno())
            os.link(tmp_name, path)
        except FileExistsError as exc:
            raise AlreadyExistsError(name) from exc
        except OSError as exc:
            raise StoreIOError(f"cannot write secret {name!r}: {exc.strerror or exc}") from exc
        finally:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
        self._sync_directory()
        logbook.info({"action": "store_create", "name": name})

    def delete(self, name: str) -> None:
        """Unlink the entry. The file content is not overwritten first."""

        path = self._path(name)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(name) from exc
        except OSError as exc:
            raise StoreIOError(f"cannot delete secret {name!r}: {exc.strerror or exc}") from exc
        self._sync_directory()
        logbook.info({"action": "store_delete", "name": name})

    def _sync_directory(self) -> None:
        if os.name != "posix":
            return
        try:
            fd = os.open(self.root, os.O_RDONLY)
        except OSError:
            logger.debug("cannot open %s for fsync", self.root, exc_info=True)
            return
        try:
            os.fsync(fd)
        except OSError:
            logger.debug("directory fsync failed for %s", self.root, exc_info=True)
        finally:
            os.close(fd)


__all__ = ["SecretStore", "validate_name"]
