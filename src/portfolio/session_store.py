"""Session-scoped expand/collapse state for timeline rows."""
from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, Dict, Set, Tuple

logger = logging.getLogger(__name__)

_MAX_TRACKED_TIMELINES = 200

_expanded_store: Dict[Tuple[str, str], Set[int]] = {}
_lock = Lock()


def _key(session_id: str, project_id: str) -> Tuple[str, str]:
    if not session_id:
        raise ValueError("Session ID is required to track timeline rows.")
    if not project_id:
        raise ValueError("Project ID is required to track timeline rows.")
    return session_id, project_id


def get_expanded(session_id: str, project_id: str) -> Set[int]:
    """Return a copy of the expanded milestone rows for the session's timeline."""

    if not session_id or not project_id:
        return set()

    with _lock:
        return set(_expanded_store.get((session_id, project_id), ()))


def _store(key: Tuple[str, str], rows: Set[int]) -> Set[int]:
    # Caller must hold _lock.
    cleaned = {int(row) for row in rows if int(row) >= 0}
    if key not in _expanded_store and len(_expanded_store) >= _MAX_TRACKED_TIMELINES:
        dropped = next(iter(_expanded_store))
        _expanded_store.pop(dropped)
        logger.info("Timeline state capacity reached. Dropping %s", dropped)
    _expanded_store[key] = cleaned
    return set(cleaned)


def set_expanded(session_id: str, project_id: str, rows: Set[int]) -> None:
    """Replace the expanded rows for the session's timeline."""

    key = _key(session_id, project_id)
    with _lock:
        stored = _store(key, rows)
    logger.debug("Expanded rows for %s: %s", key, sorted(stored))


def update_expanded(
    session_id: str, project_id: str, update: Callable[[Set[int]], Set[int]]
) -> Set[int]:
    """Apply ``update`` to the current expanded rows and store the result atomically."""

    key = _key(session_id, project_id)
    with _lock:
        current = set(_expanded_store.get(key, ()))
        stored = _store(key, update(current))
    logger.debug("Expanded rows for %s: %s", key, sorted(stored))
    return stored


def toggle_row(session_id: str, project_id: str, row_index: int) -> Set[int]:
    """Flip a single milestone row open or closed and return the new state."""

    if row_index < 0:
        raise ValueError("Row index must not be negative.")

    expanded = update_expanded(session_id, project_id, lambda rows: rows ^ {row_index})
    logger.info("Toggled row %s for project %s in session %s", row_index, project_id, session_id)
    return expanded


def reset(session_id: str, project_id: str | None = None) -> None:
    """Forget expanded rows for one timeline, or for the whole session."""

    if not session_id:
        return

    with _lock:
        keys = [
            key
            for key in _expanded_store
            if key[0] == session_id and (project_id is None or key[1] == project_id)
        ]
        for key in keys:
            _expanded_store.pop(key, None)
    if keys:
        logger.info("Reset %s timeline states for session %s", len(keys), session_id)
