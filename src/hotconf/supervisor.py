"""
Reload supervisor.

Each watched configuration file ``P`` has a shadow copy at
``dir(P)/load/base(P)``.  Operators edit the shadow; the supervisor only
watches shadow directories.  When a shadow changes, its bytes are decoded and
validated into fresh candidate values.  Only if every candidate is valid are
the same bytes written over ``P`` and the live values replaced.  Any failure
leaves both the live values and ``P`` untouched.

Change events are processed one at a time by a single worker thread.
"""

import hashlib
import logging
import os
import queue
import threading
import time
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .addressing import resolve
from .exceptions import (
    AddressingError,
    ConfigurationValidationError,
    DecodeError,
    FileOperationError,
    NotFoundError,
    WatcherError,
)
from .files import write_atomic
from .formats import decode_bytes
from .handle import ConfigurationHandle
from .models import build_value, notify_changed
from .settings import RuntimeSettings

logger = logging.getLogger(__name__)


class WatchState(Enum):
    STABLE = "stable"
    STAGED = "staged"
    VALIDATING = "validating"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class WatchBinding:
    """A handle whose value lives at ``item_path`` inside a watched file."""

    handle: ConfigurationHandle
    item_path: str = ""


def content_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class WatchEntry:
    """Reload bookkeeping for one authoritative file and its shadow."""

    def __init__(self, file_path: Union[str, Path], shadow_path: Union[str, Path], format: Optional[str] = None):
        self.file_path = Path(file_path)
        self.shadow_path = Path(shadow_path)
        self.format = format or self.file_path.suffix.lstrip(".").lower()
        self.bindings: List[WatchBinding] = []
        self.state = WatchState.STABLE
        self.last_outcome: Optional[WatchState] = None
        self.last_error: Optional[str] = None
        self.committed_digest: Optional[str] = None
        self.rejected_digest: Optional[str] = None
        self.commit_count = 0
        self.rollback_count = 0

    @property
    def key(self) -> str:
        return os.path.realpath(self.shadow_path)

    def bind(self, handle: ConfigurationHandle, item_path: str = "") -> WatchBinding:
        binding = WatchBinding(handle, item_path)
        self.bindings.append(binding)
        return binding

    def __repr__(self) -> str:
        names = ", ".join(b.handle.name for b in self.bindings)
        return f"<WatchEntry {self.file_path} [{names}] {self.state.value}>"


class ShadowFileHandler(FileSystemEventHandler):
    """Forwards write-type events on shadow files to the supervisor."""

    def __init__(self, supervisor: "ReloadSupervisor"):
        super().__init__()
        self.supervisor = supervisor

    def on_modified(self, event):
        if not event.is_directory:
            self.supervisor.submit(event.src_path)

    def on_created(self, event):
        if not event.is_directory:
            self.supervisor.submit(event.src_path)

    def on_moved(self, event):
        if not event.is_directory:
            self.supervisor.submit(event.dest_path)

    def on_closed(self, event):
        if not event.is_directory:
            self.supervisor.submit(event.src_path)


class ReloadSupervisor:
    """
    Watches shadow files and commits or rolls back each change.

    ``start()`` launches the file observer and the reload worker;
    ``process_change()`` runs one reload synchronously.
    """

    def __init__(self, settings: Optional[RuntimeSettings] = None):
        self.settings = settings or RuntimeSettings()
        self._entries: Dict[str, WatchEntry] = {}
        self._scheduled: Dict[str, object] = {}
        self._queue: "queue.Queue[str]" = queue.Queue()
        self._handler = ShadowFileHandler(self)
        self._observer = None
        self._worker: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.RLock()
        self._reload_lock = threading.Lock()

    # ----------------------------- registration -----------------------------

    def watch(self, entry: WatchEntry) -> WatchEntry:
        """
        Register ``entry``; its shadow directory is scheduled if running.

        Raises:
            WatcherError: If the running observer cannot watch the directory.
                The entry is not registered in that case.
        """
        with self._lock:
            existing = self._entries.get(entry.key)
            if existing is not None and existing is not entry:
                raise ValueError(f"Shadow file {entry.shadow_path} is already watched")
            if self._observer is not None:
                directory = os.path.dirname(entry.key)
                try:
                    self._schedule(self._observer, directory)
                except (OSError, RuntimeError, ValueError) as e:
                    raise WatcherError(f"Failed to watch {directory}: {e}", watch_path=directory, cause=e) from e
            self._entries[entry.key] = entry
        logger.debug(f"Watching {entry.shadow_path} for {entry.file_path}")
        return entry

    def entry_for(self, file_path: Union[str, Path]) -> Optional[WatchEntry]:
        """Find the entry whose authoritative file is ``file_path``."""
        target = os.path.realpath(file_path)
        with self._lock:
            for entry in self._entries.values():
                if os.path.realpath(entry.file_path) == target:
                    return entry
        return None

    def entries(self) -> List[WatchEntry]:
        with self._lock:
            return list(self._entries.values())

    # ----------------------------- lifecycle -----------------------------

    def _create_observer(self):
        if self.settings.observer == "polling":
            return PollingObserver(timeout=self.settings.polling_interval)
        return Observer()

    def _schedule(self, observer, directory: str) -> None:
        if directory in self._scheduled:
            return
        self._scheduled[directory] = observer.schedule(self._handler, directory, recursive=False)

    def start(self) -> None:
        """
        Start watching.

        Raises:
            WatcherError: If the file watch subsystem cannot be started.
        """
        with self._lock:
            if self._worker is not None:
                return

            try:
                observer = self._create_observer()
                self._scheduled.clear()
                for key in self._entries:
                    self._schedule(observer, os.path.dirname(key))
                observer.start()
            except (OSError, RuntimeError, ValueError) as e:
                self._scheduled.clear()
                raise WatcherError(f"Failed to start file watcher: {e}", cause=e) from e

            self._observer = observer
            self._stop_event.clear()
            self._worker = threading.Thread(
                target=self._worker_loop,
                name="ConfigReloadSupervisor",
                daemon=True
            )
            self._worker.start()
        logger.info(f"Reload supervisor started, watching {len(self._scheduled)} director(ies)")

    def stop(self) -> None:
        """Stop the observer and the worker. Pending events are dropped."""
        with self._lock:
            observer, worker = self._observer, self._worker
            self._observer = None
            self._worker = None
            self._scheduled.clear()

        if observer is None and worker is None:
            return

        self._stop_event.set()
        if observer is not None:
            observer.stop()
            observer.join(timeout=self.settings.stop_timeout)
        if worker is not None:
            worker.join(timeout=self.settings.stop_timeout)
        self._drain()
        logger.info("Reload supervisor stopped")

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return
            self._queue.task_done()

    def is_running(self) -> bool:
        with self._lock:
            return self._worker is not None and self._worker.is_alive()

    # ----------------------------- event loop -----------------------------

    def submit(self, path: Union[str, Path]) -> None:
        """Queue a change notification for ``path``."""
        if self._stop_event.is_set() or self._worker is None:
            logger.debug(f"Supervisor not running, dropping change to {path}")
            return
        self._queue.put(os.fsdecode(path))

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                path = self._queue.get(timeout=self.settings.queue_poll_interval)
            except queue.Empty:
                continue
            try:
                self.process_change(path)
            except Exception as e:
                logger.error(f"Unexpected error while reloading {path}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    def wait_idle(self, timeout: float = 5.0) -> bool:
        """Block until every queued event is processed; False on timeout."""
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    # ----------------------------- reload -----------------------------

    def process_change(self, path: Union[str, Path]) -> Optional[WatchState]:
        """
        Stage, validate and commit (or roll back) the shadow file at ``path``.

        Returns the outcome, or None when nothing was done (unwatched path,
        missing shadow, or content identical to the last decision).
        """
        key = os.path.realpath(path)
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Ignoring change to unwatched file {path}")
            return None

        with self._reload_lock:
            return self._reload(entry)

    def _reload(self, entry: WatchEntry) -> Optional[WatchState]:
        try:
            data = entry.shadow_path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"Shadow file {entry.shadow_path} disappeared, ignoring event")
            return None
        except OSError as e:
            logger.warning(f"Cannot read shadow file {entry.shadow_path}: {e}")
            return None

        digest = content_digest(data)
        if digest == entry.committed_digest:
            logger.debug(f"{entry.shadow_path} unchanged since last commit")
            return None
        if digest == entry.rejected_digest:
            logger.debug(f"{entry.shadow_path} still holds rejected content")
            return None

        entry.state = WatchState.STAGED
        try:
            tree = decode_bytes(data, entry.format)
        except DecodeError as e:
            return self._rollback(entry, digest, f"cannot decode: {e}")
        except Exception as e:
            return self._rollback(entry, digest, f"decoder failed: {e!r}")

        entry.state = WatchState.VALIDATING
        candidates = []
        try:
            for binding in entry.bindings:
                node = resolve(tree, binding.item_path)
                if node.is_null:
                    raise NotFoundError(
                        f"'{binding.item_path}' is null in {entry.shadow_path}",
                        path=binding.item_path
                    )
                candidates.append(build_value(binding.handle.template, node, binding.handle.name))
        except AddressingError as e:
            return self._rollback(entry, digest, f"configuration missing: {e}")
        except ConfigurationValidationError as e:
            return self._rollback(entry, digest, e.get_detailed_message())
        except Exception as e:
            return self._rollback(entry, digest, f"validation failed: {e!r}")

        try:
            write_atomic(entry.file_path, data)
        except FileOperationError as e:
            return self._rollback(entry, digest, f"cannot update {entry.file_path}: {e}", remember=False)

        with ExitStack() as stack:
            for binding in entry.bindings:
                stack.enter_context(binding.handle._lock)
            old_values = [
                binding.handle._swap(candidate)
                for binding, candidate in zip(entry.bindings, candidates)
            ]

        entry.state = WatchState.COMMITTED
        entry.committed_digest = digest
        entry.rejected_digest = None
        entry.last_error = None
        entry.commit_count += 1
        names = ", ".join(b.handle.name for b in entry.bindings)
        logger.info(
            f"Reloaded configuration [{names}] from {entry.shadow_path}",
            extra={"config_file": str(entry.file_path), "configurations": names, "outcome": "committed"}
        )

        for binding, old_value, new_value in zip(entry.bindings, old_values, candidates):
            notify_changed(new_value, binding.handle.name)
            binding.handle._notify(old_value, new_value)

        return self._settle(entry, WatchState.COMMITTED)

    def _rollback(self, entry: WatchEntry, digest: str, reason: str, remember: bool = True) -> WatchState:
        entry.state = WatchState.ROLLED_BACK
        if remember:
            entry.rejected_digest = digest
        entry.last_error = reason
        entry.rollback_count += 1
        logger.warning(
            f"Rejected change to {entry.shadow_path}, keeping previous configuration: {reason}",
            extra={"config_file": str(entry.file_path), "outcome": "rolled_back"}
        )
        return self._settle(entry, WatchState.ROLLED_BACK)

    def _settle(self, entry: WatchEntry, outcome: WatchState) -> WatchState:
        entry.last_outcome = outcome
        entry.state = WatchState.STABLE
        return outcome
