"""Time bounded clipboard exposure.

Every :meth:`ClipboardSession.expose` and :meth:`ClipboardSession.clear`
advances a generation token. A scheduled auto-clear remembers the token it
was created for and does nothing unless that token is still current, so a
stale timer can never wipe a newer secret. The comparison and the clear run
under the same lock that ``expose`` holds while installing a new value.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import tempfile
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, ContextManager, Dict, Iterator, List, Optional, Protocol, Sequence

from .config import CLIPBOARD_TTL_SECS
from .errors import ClipboardUnavailableError, ClipVaultError
from .utils import logbook

logger = logging.getLogger(__name__)

ExpireAction = Callable[[int], bool]


# -- backends ---------------------------------------------------------------


class ClipboardBackend(Protocol):
    """Protocol implemented by every platform clipboard."""

    def copy(self, data: bytes) -> None:
        ...

    def clear(self) -> None:
        ...


class CommandClipboard:
    """Clipboard driven by a platform command reading from stdin."""

    def __init__(
        self,
        name: str,
        copy_command: Sequence[str],
        clear_command: Optional[Sequence[str]] = None,
        timeout: float = 5.0,
    ) -> None:
        self.name = name
        self.copy_command = list(copy_command)
        self.clear_command = list(clear_command) if clear_command else None
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"CommandClipboard({self.name!r})"

    def copy(self, data: bytes) -> None:
        self._run(self.copy_command, data)

    def clear(self) -> None:
        if self.clear_command is not None:
            self._run(self.clear_command, b"")
        else:
            self._run(self.copy_command, b"")

    def _run(self, command: List[str], data: bytes) -> None:
        # Output is discarded rather than captured: xclip forks a child that
        # keeps inherited pipes open until the selection changes hands.
        try:
            subprocess.run(
                command,
                input=data,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as exc:
            raise ClipboardUnavailableError(f"clipboard tool {command[0]!r} is not installed") from exc
        except subprocess.CalledProcessError as exc:
            raise ClipboardUnavailableError(f"{self.name} exited with status {exc.returncode}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ClipboardUnavailableError(f"{self.name} did not respond within {self.timeout:g}s") from exc
        except OSError as exc:
            raise ClipboardUnavailableError(f"cannot run {self.name}: {exc}") from exc


_BACKENDS: Dict[str, Callable[[], CommandClipboard]] = {
    "pbcopy": lambda: CommandClipboard("pbcopy", ["pbcopy"]),
    "wl-copy": lambda: CommandClipboard("wl-copy", ["wl-copy"], ["wl-copy", "--clear"]),
    "xclip": lambda: CommandClipboard("xclip", ["xclip", "-selection", "clipboard"]),
    "xsel": lambda: CommandClipboard(
        "xsel", ["xsel", "--clipboard", "--input"], ["xsel", "--clipboard", "--clear"]
    ),
    "clip": lambda: CommandClipboard("clip", ["clip"]),
}


def available_backends() -> List[str]:
    return sorted(_BACKENDS)


def detect_backend(forced: Optional[str] = None) -> CommandClipboard:
    """Pick the clipboard command for this platform.

    *forced* (``CLIPVAULT_CLIPBOARD``) names a backend explicitly.
    """

    if forced:
        factory = _BACKENDS.get(forced)
        if factory is None:
            raise ClipboardUnavailableError(
                f"unknown clipboard backend {forced!r} (choose from {', '.join(available_backends())})"
            )
        return factory()
    if sys.platform == "darwin":
        return _BACKENDS["pbcopy"]()
    if os.name == "nt":
        return _BACKENDS["clip"]()
    candidates: List[str] = []
    if os.environ.get("WAYLAND_DISPLAY"):
        candidates.append("wl-copy")
    if os.environ.get("DISPLAY"):
        candidates.extend(["xclip", "xsel"])
    for name in candidates:
        if shutil.which(_BACKENDS[name]().copy_command[0]):
            return _BACKENDS[name]()
    raise ClipboardUnavailableError(
        "no clipboard found; install wl-clipboard, xclip or xsel, or set CLIPVAULT_CLIPBOARD"
    )


# -- generation tokens ------------------------------------------------------


class Generations(Protocol):
    """Source of monotonically increasing generation tokens."""

    def locked(self) -> ContextManager[None]:
        ...

    def current(self) -> int:
        ...

    def advance(self) -> int:
        ...


class GenerationCounter:
    """In-process generation token guarded by a thread lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._lock:
            yield

    def current(self) -> int:
        return self._value

    def advance(self) -> int:
        self._value += 1
        return self._value


def _acquire(handle) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)


def _release(handle) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def _file_lock(path: Path) -> Iterator[None]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(path, "a+b")
    except OSError as exc:
        raise ClipboardUnavailableError(f"cannot lock clipboard state {path}: {exc}") from exc
    with handle:
        try:
            _acquire(handle)
        except OSError as exc:
            raise ClipboardUnavailableError(f"cannot lock clipboard state {path}: {exc}") from exc
        try:
            yield
        finally:
            _release(handle)


class FileGenerationCounter:
    """Generation token shared between processes through the state directory.

    The CLI exits right after copying; the follow-up process that clears the
    clipboard reads the same file to learn whether it has been superseded.
    """

    def __init__(self, directory: Path) -> None:
        self.path = Path(directory) / "clipboard.generation"
        self.lock_path = Path(directory) / "clipboard.lock"
        self._thread_lock = threading.Lock()

    @contextmanager
    def locked(self) -> Iterator[None]:
        with self._thread_lock, _file_lock(self.lock_path):
            yield

    def current(self) -> int:
        try:
            return int(self.path.read_text(encoding="ascii").strip())
        except FileNotFoundError:
            return 0
        except (OSError, ValueError):
            logger.debug("unreadable generation file %s, starting over", self.path, exc_info=True)
            return 0

    def advance(self) -> int:
        value = self.current() + 1
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".generation.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="ascii") as handle:
                handle.write(str(value))
            os.replace(tmp_name, self.path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise ClipboardUnavailableError(f"cannot record clipboard generation: {exc}") from exc
        return value


# -- schedulers -------------------------------------------------------------


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def schedule(self, delay: float, generation: int, action: ExpireAction) -> Cancellable:
        ...


class ThreadScheduler:
    """Run the auto-clear on a daemon :class:`threading.Timer`.

    Suits long-lived hosts; the timer dies with the interpreter.
    """

    def schedule(self, delay: float, generation: int, action: ExpireAction) -> Cancellable:
        timer = threading.Timer(delay, self._run, args=(action, generation))
        timer.daemon = True
        timer.start()
        return timer

    @staticmethod
    def _run(action: ExpireAction, generation: int) -> None:
        try:
            action(generation)
        except (ClipVaultError, OSError) as exc:
            logbook.warning({"action": "clipboard_expire", "status": "failure", "error": str(exc)})


class _DetachedHandle:
    def __init__(self, process: subprocess.Popen) -> None:
        self.process = process

    def cancel(self) -> None:
        # The follow-up process sees the newer generation and exits quietly.
        pass


class DetachedScheduler:
    """Hand the auto-clear to a separate ``clipvault expire-clipboard`` process.

    The follow-up process outlives the command that spawned it and rebuilds
    its own session, so *action* is not called here. It must share the
    spawning session's :class:`FileGenerationCounter` directory.
    """

    def __init__(self, executable: Optional[str] = None) -> None:
        self.executable = executable or sys.executable

    def command(self, delay: float, generation: int) -> List[str]:
        return [
            self.executable,
            "-m",
            "clipvault",
            "expire-clipboard",
            str(generation),
            "--after",
            f"{delay:g}",
        ]

    def schedule(self, delay: float, generation: int, action: ExpireAction) -> Cancellable:
        kwargs: Dict[str, object] = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.DEVNULL,
            "close_fds": True,
        }
        if os.name == "nt":
            kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True
        try:
            process = subprocess.Popen(self.command(delay, generation), **kwargs)
        except OSError as exc:
            raise ClipboardUnavailableError(f"cannot schedule clipboard clear: {exc}") from exc
        return _DetachedHandle(process)


# -- session ----------------------------------------------------------------


@dataclass
class ClipboardExposure:
    """One window during which a plaintext sits in the clipboard."""

    plaintext: bytes = field(repr=False)
    created_at: float
    ttl: float
    generation: int

    @property
    def deadline(self) -> float:
        return self.created_at + self.ttl


class ClipboardSession:
    """Own the clipboard while a secret is exposed.

    States are ``"idle"`` and ``"exposed"``. A new :meth:`expose` restarts the
    window; the auto-clear or :meth:`clear` ends it.
    """

    def __init__(
        self,
        backend: ClipboardBackend,
        ttl: float = CLIPBOARD_TTL_SECS,
        generations: Optional[Generations] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.backend = backend
        self.ttl = ttl
        self.generations = generations or GenerationCounter()
        self.scheduler = scheduler or ThreadScheduler()
        self.clock = clock
        self._pending: Optional[Cancellable] = None
        self._exposure: Optional[ClipboardExposure] = None

    @property
    def state(self) -> str:
        return "exposed" if self._exposure is not None else "idle"

    @property
    def exposure(self) -> Optional[ClipboardExposure]:
        return self._exposure

    def expose(self, plaintext: bytes) -> ClipboardExposure:
        """Put *plaintext* on the clipboard and arm a fresh auto-clear."""

        with self.generations.locked():
            generation = self.generations.advance()
            self._cancel_pending()
            self._exposure = None
            try:
                self.backend.copy(plaintext)
                self._pending = self.scheduler.schedule(self.ttl, generation, self.expire)
            except ClipboardUnavailableError:
                self._clear_quietly()
                raise
            self._exposure = ClipboardExposure(
                plaintext=plaintext,
                created_at=self.clock(),
                ttl=self.ttl,
                generation=generation,
            )
        logbook.info({"action": "clipboard_expose", "generation": generation, "ttl": self.ttl})
        return self._exposure

    def expire(self, generation: int) -> bool:
        """Auto-clear for *generation*; returns ``False`` when superseded."""

        with self.generations.locked():
            current = self.generations.current()
            if current != generation:
                logger.debug("skipping stale clear for generation %s (current %s)", generation, current)
                return False
            self._pending = None
            self._exposure = None
            self.backend.clear()
        logbook.info({"action": "clipboard_expire", "generation": generation})
        return True

    def clear(self) -> None:
        """End any exposure now and disarm its timer."""

        with self.generations.locked():
            generation = self.generations.advance()
            self._cancel_pending()
            self._exposure = None
            self.backend.clear()
        logbook.info({"action": "clipboard_clear", "generation": generation})

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _clear_quietly(self) -> None:
        try:
            self.backend.clear()
        except ClipboardUnavailableError:
            logger.debug("clipboard clear after failed expose also failed", exc_info=True)


__all__ = [
    "ClipboardBackend",
    "ClipboardExposure",
    "ClipboardSession",
    "CommandClipboard",
    "DetachedScheduler",
    "FileGenerationCounter",
    "GenerationCounter",
    "Generations",
    "Scheduler",
    "ThreadScheduler",
    "available_backends",
    "detect_backend",
]
