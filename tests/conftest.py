from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import keyring
import keyring.backend
import pytest
from keyring.errors import PasswordDeleteError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from clipvault.clipboard import ClipboardSession, GenerationCounter  # noqa: E402
from clipvault.errors import ClipboardUnavailableError  # noqa: E402
from clipvault.security.cipher import PasswordCipher  # noqa: E402
from clipvault.service import SecretService  # noqa: E402
from clipvault.store import SecretStore  # noqa: E402
from clipvault.utils import logbook  # noqa: E402

FAST_ITERATIONS = 1_000


class MemoryKeyring(keyring.backend.KeyringBackend):
    priority = 1

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self._data.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self._data[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        if (service, username) not in self._data:
            raise PasswordDeleteError("not found")
        del self._data[(service, username)]


class MemoryClipboard:
    def __init__(self) -> None:
        self.content = b""
        self.events: List[Tuple[str, Optional[bytes]]] = []
        self.broken = False

    def copy(self, data: bytes) -> None:
        if self.broken:
            raise ClipboardUnavailableError("clipboard is gone")
        self.content = bytes(data)
        self.events.append(("copy", bytes(data)))

    def clear(self) -> None:
        if self.broken:
            raise ClipboardUnavailableError("clipboard is gone")
        self.content = b""
        self.events.append(("clear", None))

    @property
    def clears(self) -> int:
        return sum(1 for kind, _ in self.events if kind == "clear")


@dataclass
class Scheduled:
    delay: float
    generation: int
    action: Callable[[int], bool]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> bool:
        return self.action(self.generation)


class ManualScheduler:
    """Records auto-clears so tests decide when each timer fires."""

    def __init__(self) -> None:
        self.scheduled: List[Scheduled] = []

    def schedule(self, delay: float, generation: int, action: Callable[[int], bool]) -> Scheduled:
        entry = Scheduled(delay=delay, generation=generation, action=action)
        self.scheduled.append(entry)
        return entry


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CLIPVAULT_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("CLIPVAULT_STORE_DIR", str(tmp_path / "secrets"))
    for variable in (
        "CLIPVAULT_PASSWORD",
        "CLIPVAULT_CLIPBOARD",
        "CLIPVAULT_CLIPBOARD_TTL",
        "CLIPVAULT_KDF_ITERATIONS",
        "CLIPVAULT_KEYRING_SERVICE",
    ):
        monkeypatch.delenv(variable, raising=False)
    keyring.set_keyring(MemoryKeyring())
    yield tmp_path
    logbook.shutdown()


@pytest.fixture()
def memory_clipboard() -> MemoryClipboard:
    return MemoryClipboard()


@pytest.fixture()
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def cipher() -> PasswordCipher:
    return PasswordCipher(iterations=FAST_ITERATIONS)


@pytest.fixture()
def store(tmp_path: Path) -> SecretStore:
    return SecretStore(tmp_path / "secrets")


@pytest.fixture()
def session(memory_clipboard: MemoryClipboard, manual_scheduler: ManualScheduler) -> ClipboardSession:
    return ClipboardSession(
        backend=memory_clipboard,
        ttl=30,
        generations=GenerationCounter(),
        scheduler=manual_scheduler,
    )


@pytest.fixture()
def service(store: SecretStore, cipher: PasswordCipher, session: ClipboardSession) -> SecretService:
    return SecretService(store=store, cipher=cipher, clipboard=session)
