"""End-to-end behaviour of the secret service."""

from __future__ import annotations

from pathlib import Path

import pytest

from clipvault import service as service_module
from clipvault.clipboard import DetachedScheduler, FileGenerationCounter
from clipvault.config import Settings
from clipvault.errors import (
    AlreadyExistsError,
    ClipboardUnavailableError,
    InvalidNameError,
    NotFoundError,
    WrongPasswordError,
    WrongPasswordOrCorruptError,
)
from clipvault.service import SecretService
from clipvault.utils.paths import state_dir


def test_set_list_get_delete_lifecycle(service: SecretService, memory_clipboard) -> None:
    service.set("db", b"hunter2", b"master")
    assert "db" in service.list()

    ttl = service.get("db", b"master")
    assert ttl == 30
    assert memory_clipboard.content == b"hunter2"
    assert service.clipboard.state == "exposed"

    service.delete("db")
    assert service.list() == []
    with pytest.raises(NotFoundError):
        service.get("db", b"master")


def test_wrong_password_leaves_clipboard_untouched(service: SecretService, memory_clipboard) -> None:
    service.set("db", b"hunter2", b"master")
    memory_clipboard.content = b"unrelated"
    with pytest.raises(WrongPasswordError) as excinfo:
        service.get("db", b"guess")
    assert isinstance(excinfo.value, WrongPasswordOrCorruptError)
    assert str(excinfo.value) == "wrong password"
    assert memory_clipboard.events == []
    assert memory_clipboard.content == b"unrelated"


def test_corrupt_blob_reported_as_wrong_password(service: SecretService, memory_clipboard) -> None:
    service.set("db", b"hunter2", b"master")
    (service.store.root / "db").write_bytes(b"garbage")
    with pytest.raises(WrongPasswordError):
        service.get("db", b"master")
    assert memory_clipboard.events == []


def test_clipboard_failure_fails_get(service: SecretService, memory_clipboard) -> None:
    service.set("db", b"hunter2", b"master")
    memory_clipboard.broken = True
    with pytest.raises(ClipboardUnavailableError):
        service.get("db", b"master")


def test_set_refuses_existing_name(service: SecretService) -> None:
    service.set("db", b"hunter2", b"master")
    before = service.store.read("db")
    with pytest.raises(AlreadyExistsError):
        service.set("db", b"other", b"master")
    assert service.store.read("db") == before


def test_secrets_are_not_stored_in_plaintext(service: SecretService) -> None:
    service.set("db", b"hunter2", b"master")
    assert b"hunter2" not in (service.store.root / "db").read_bytes()


def test_delete_missing(service: SecretService) -> None:
    with pytest.raises(NotFoundError):
        service.delete("ghost")


def test_invalid_name(service: SecretService) -> None:
    with pytest.raises(InvalidNameError):
        service.get("../etc/passwd", b"master")


def test_second_get_restarts_window(service: SecretService, memory_clipboard, manual_scheduler) -> None:
    service.set("db", b"hunter2", b"master")
    service.set("web", b"swordfish", b"master")
    service.get("db", b"master")
    service.get("web", b"master")
    first, second = manual_scheduler.scheduled
    assert first.fire() is False
    assert memory_clipboard.content == b"swordfish"
    assert second.fire() is True
    assert memory_clipboard.content == b""


def test_clear_clipboard(service: SecretService, memory_clipboard) -> None:
    service.set("db", b"hunter2", b"master")
    service.get("db", b"master")
    service.clear_clipboard()
    assert memory_clipboard.content == b""
    assert service.clipboard.state == "idle"


def test_from_settings_wires_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _no_clipboard(forced=None):
        raise ClipboardUnavailableError("no clipboard found")

    monkeypatch.setattr(service_module, "detect_backend", _no_clipboard)
    monkeypatch.setenv("CLIPVAULT_CLIPBOARD_TTL", "12")
    monkeypatch.setenv("CLIPVAULT_KDF_ITERATIONS", "1000")
    settings = Settings.from_env()
    built = SecretService.from_settings(settings)

    assert built.store.root == (tmp_path / "secrets").resolve()
    assert built.cipher.iterations == 1000
    assert built.clipboard.ttl == 12
    assert isinstance(built.clipboard.scheduler, DetachedScheduler)
    assert isinstance(built.clipboard.generations, FileGenerationCounter)
    assert built.clipboard.generations.path.parent == state_dir()

    # The clipboard is only looked up when it is needed.
    built.set("db", b"hunter2", b"master")
    assert built.list() == ["db"]
    with pytest.raises(ClipboardUnavailableError):
        built.get("db", b"master")
