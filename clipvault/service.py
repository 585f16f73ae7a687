"""Secret lifecycle operations tying store, cipher and clipboard together."""

from __future__ import annotations

from typing import List, Optional

from .clipboard import (
    ClipboardBackend,
    ClipboardSession,
    DetachedScheduler,
    FileGenerationCounter,
    Scheduler,
    detect_backend,
)
from .config import Settings
from .errors import AlreadyExistsError, NotFoundError, WrongPasswordError, WrongPasswordOrCorruptError
from .security.cipher import PasswordCipher
from .store import SecretStore
from .utils import logbook


class SecretService:
    """High level façade used by the command dispatcher."""

    def __init__(self, store: SecretStore, cipher: PasswordCipher, clipboard: ClipboardSession) -> None:
        self.store = store
        self.cipher = cipher
        self.clipboard = clipboard

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        backend: Optional[ClipboardBackend] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> "SecretService":
        """Wire the default collaborators.

        The clipboard backend is resolved lazily so that ``list`` or ``set``
        work on machines without a clipboard.
        """

        session = ClipboardSession(
            backend=backend or _LazyBackend(settings.clipboard_backend),
            ttl=settings.clipboard_ttl,
            generations=FileGenerationCounter(settings.state_dir),
            scheduler=scheduler or DetachedScheduler(),
        )
        return cls(
            store=SecretStore(settings.store_dir),
            cipher=PasswordCipher(iterations=settings.kdf_iterations),
            clipboard=session,
        )

    def list(self) -> List[str]:
        return self.store.list()

    def get(self, name: str, password: bytes) -> float:
        """Copy the decrypted secret to the clipboard and return the TTL.

        A wrong password leaves the clipboard untouched. A clipboard failure
        after a successful decrypt fails the whole operation.
        """

        if not self.store.exists(name):
            raise NotFoundError(name)
        ciphertext = self.store.read(name)
        try:
            plaintext = self.cipher.decrypt(ciphertext, password)
        except WrongPasswordOrCorruptError as exc:
            logbook.warning({"action": "secret_get", "name": name, "status": "wrong_password"})
            raise WrongPasswordError(name) from exc
        exposure = self.clipboard.expose(plaintext)
        logbook.info({"action": "secret_get", "name": name, "ttl": exposure.ttl})
        return exposure.ttl

    def set(self, name: str, value: bytes, password: bytes) -> None:
        if self.store.exists(name):
            raise AlreadyExistsError(name)
        self.store.create(name, self.cipher.encrypt(value, password))

    def delete(self, name: str) -> None:
        self.store.delete(name)

    def clear_clipboard(self) -> None:
        self.clipboard.clear()


class _LazyBackend:
    def __init__(self, forced: Optional[str]) -> None:
        self._forced = forced
        self._backend: Optional[ClipboardBackend] = None

    def _resolve(self) -> ClipboardBackend:
        if self._backend is None:
            self._backend = detect_backend(self._forced)
        return self._backend

    def copy(self, data: bytes) -> None:
        self._resolve().copy(data)

    def clear(self) -> None:
        self._resolve().clear()


__all__ = ["SecretService"]
