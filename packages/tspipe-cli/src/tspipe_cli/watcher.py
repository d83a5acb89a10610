"""File watcher triggering rebuilds when TypeScript sources change.

Architecture:
- SourceWatcher: Main watcher class with start/stop lifecycle
- Uses watchdog FileSystemEventHandler for file monitoring
- Debounces rapid changes (editors often write a file several times)
- Ignores output directories, so declarations written by a build do not
  trigger another build

Usage:
    >>> with SourceWatcher(Path("."), session.build, ignore=[Path("build")]):
    ...     time.sleep(3600)
"""

from __future__ import annotations

import enum
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = structlog.get_logger(__name__)

WATCHED_SUFFIX = ".ts"
IGNORED_DIRECTORIES = frozenset({"node_modules", ".git"})

ChangeCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]


class WatcherState(enum.Enum):
    """State of the SourceWatcher."""

    STOPPED = "stopped"
    RUNNING = "running"


class WatcherError(Exception):
    """Raised when the watcher is started twice or the directory is missing."""


class _SourceEventHandler(FileSystemEventHandler):
    """Internal handler for watchdog file events.

    Reacts to created, modified, deleted and moved ``.ts`` files and
    coalesces bursts of events into one callback.
    """

    def __init__(
        self,
        on_change: ChangeCallback,
        debounce_seconds: float,
        ignore: Iterable[Path] = (),
    ) -> None:
        super().__init__()
        self._on_change = on_change
        self._debounce_seconds = debounce_seconds
        self._ignore = [path.resolve() for path in ignore]
        self._pending_timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event.src_path, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle(event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._handle(event.src_path, event.is_directory)
        self._handle(getattr(event, "dest_path", ""), event.is_directory)

    def is_relevant(self, path: Path) -> bool:
        """True for TypeScript sources outside ignored directories."""
        if path.suffix != WATCHED_SUFFIX:
            return False
        if IGNORED_DIRECTORIES.intersection(path.parts):
            return False
        resolved = path.resolve()
        return not any(resolved.is_relative_to(ignored) for ignored in self._ignore)

    def _handle(self, src_path: str | bytes, is_directory: bool) -> None:
        if is_directory or not src_path:
            return
        if isinstance(src_path, bytes):
            src_path = src_path.decode("utf-8")
        if not self.is_relevant(Path(src_path)):
            return

        logger.debug("source_changed_event", path=src_path)
        self._schedule_debounced_callback()

    def _schedule_debounced_callback(self) -> None:
        """Cancel any pending timer and schedule a new one."""
        with self._lock:
            if self._pending_timer is not None:
                self._pending_timer.cancel()

            self._pending_timer = threading.Timer(
                self._debounce_seconds,
                self._fire_callback,
            )
            self._pending_timer.daemon = True
            self._pending_timer.start()

    def _fire_callback(self) -> None:
        with self._lock:
            self._pending_timer = None

        logger.debug("debounce_complete_firing_callback")
        self._on_change()

    def cancel_pending(self) -> None:
        """Cancel any pending debounced callback."""
        with self._lock:
            if self._pending_timer is not None:
                self._pending_timer.cancel()
                self._pending_timer = None


class SourceWatcher:
    """Watches a directory tree and calls ``on_change`` after source changes.

    Callbacks never overlap: a change arriving during a rebuild schedules
    another rebuild after it.

    Args:
        root: Directory to watch recursively.
        on_change: Called (debounced) after sources changed.
        debounce_seconds: Quiet period before ``on_change`` fires.
        ignore: Directories whose changes are ignored (build output).
        on_error: Called with any exception raised by ``on_change``.

    Raises:
        WatcherError: If ``root`` does not exist.

    Example:
        >>> watcher = SourceWatcher(Path("."), rebuild, ignore=[Path("build")])
        >>> watcher.start()
        >>> try:
        ...     time.sleep(60)
        ... finally:
        ...     watcher.stop()
    """

    def __init__(
        self,
        root: Path,
        on_change: ChangeCallback,
        *,
        debounce_seconds: float = 0.2,
        ignore: Iterable[Path] = (),
        on_error: ErrorCallback | None = None,
    ) -> None:
        if not root.is_dir():
            msg = f"Watch directory does not exist: {root}"
            raise WatcherError(msg)

        self._root = root
        self._on_change = on_change
        self._debounce_seconds = debounce_seconds
        self._ignore = list(ignore)
        self._on_error = on_error

        self._state = WatcherState.STOPPED
        self._observer: BaseObserver | None = None
        self._handler: _SourceEventHandler | None = None
        self._lock = threading.Lock()
        self._build_lock = threading.Lock()
        self._log = logger.bind(root=str(root))

    @property
    def root(self) -> Path:
        return self._root

    @property
    def state(self) -> WatcherState:
        with self._lock:
            return self._state

    def start(self) -> None:
        """Start watching.

        Raises:
            WatcherError: If the watcher is already running.
        """
        with self._lock:
            if self._state == WatcherState.RUNNING:
                raise WatcherError("Watcher is already running")

            self._handler = _SourceEventHandler(
                on_change=self._on_sources_changed,
                debounce_seconds=self._debounce_seconds,
                ignore=self._ignore,
            )
            self._observer = Observer()
            self._observer.schedule(self._handler, str(self._root), recursive=True)
            self._observer.start()

            self._state = WatcherState.RUNNING
            self._log.info("watcher_started")

    def stop(self) -> None:
        """Stop watching. Safe to call even if not running."""
        with self._lock:
            if self._state == WatcherState.STOPPED:
                return

            if self._handler is not None:
                self._handler.cancel_pending()
                self._handler = None

            if self._observer is not None:
                self._observer.stop()
                self._observer.join(timeout=5.0)
                self._observer = None

            self._state = WatcherState.STOPPED
            self._log.info("watcher_stopped")

    def __enter__(self) -> SourceWatcher:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.stop()

    def _on_sources_changed(self) -> None:
        """Run the change callback (debounced), one at a time."""
        self._log.info("source_change_detected")
        with self._build_lock:
            try:
                self._on_change()
            except Exception as e:
                self._log.error("rebuild_error", error=str(e))
                if self._on_error is not None:
                    self._on_error(e)
