"""Change detection between build cycles.

A build is replayed from cache only when the input set is identical in
membership and content to the input set of the last successful compilation.
"""

from __future__ import annotations

import hashlib

import structlog

from tspipe_core.store import VirtualFileStore

logger = structlog.get_logger(__name__)


def compute_hash(content: str) -> str:
    """Compute SHA-256 hash of content.

    Args:
        content: String content to hash.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def snapshot(store: VirtualFileStore) -> dict[str, str]:
    """Map every input path to the hash of its content."""
    return {path: compute_hash(entry.content) for path, entry in store.inputs.items()}


class ChangeDetector:
    """Compares the current input set with the last committed one.

    Example:
        >>> detector = ChangeDetector()
        >>> detector.is_changed(store)
        True
        >>> detector.commit(store)
        >>> detector.is_changed(store)
        False
    """

    def __init__(self) -> None:
        self._previous: dict[str, str] | None = None

    @property
    def has_snapshot(self) -> bool:
        return self._previous is not None

    def is_changed(self, store: VirtualFileStore) -> bool:
        """Return True unless inputs match the committed snapshot exactly."""
        if self._previous is None:
            return True

        current = snapshot(store)
        if current.keys() != self._previous.keys():
            logger.debug(
                "input_set_changed",
                added=sorted(current.keys() - self._previous.keys()),
                removed=sorted(self._previous.keys() - current.keys()),
            )
            return True

        modified = [path for path, digest in current.items() if self._previous[path] != digest]
        if modified:
            logger.debug("input_content_changed", modified=modified)
            return True
        return False

    def commit(self, store: VirtualFileStore) -> None:
        """Record the current inputs as the baseline for the next cycle."""
        self._previous = snapshot(store)

    def forget(self) -> None:
        """Drop the baseline so the next cycle always recompiles."""
        self._previous = None
