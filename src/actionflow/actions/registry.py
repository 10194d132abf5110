"""In-memory store of actions awaiting human confirmation."""

from __future__ import annotations

import logging
import secrets
import threading
import time

from actionflow.actions.models import ActionPayload, PendingActionEntry
from actionflow.errors import PendingActionNotFound

logger = logging.getLogger(__name__)

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def random_suffix(length: int) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


class PendingActionRegistry:
    """Lock-guarded map of pending actions keyed by id.

    Owned by the session that created it. Entries are never mutated in place,
    so one lock around the map is enough for concurrent sessions.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PendingActionEntry] = {}
        self._lock = threading.Lock()

    def register(self, payload: ActionPayload, origin: object, original_prompt: str) -> str:
        with self._lock:
            action_id = self._new_id()
            while action_id in self._entries:
                action_id = self._new_id()
            self._entries[action_id] = PendingActionEntry(
                id=action_id,
                payload=payload,
                origin=origin,
                original_prompt=original_prompt,
            )
        logger.debug("Registered pending action %s: %s", action_id, payload.command)
        return action_id

    def consume(self, action_id: str) -> PendingActionEntry:
        """Fetch and remove an entry; raise `PendingActionNotFound` if absent."""

        with self._lock:
            entry = self._entries.pop(action_id, None)
        if entry is None:
            raise PendingActionNotFound(action_id)
        return entry

    def get(self, action_id: str) -> PendingActionEntry | None:
        with self._lock:
            return self._entries.get(action_id)

    def clear_for_origin(self, origin: object) -> int:
        """Drop every entry registered against `origin`; return how many were removed."""

        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.origin is origin]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Cleared %d pending action(s) for closed origin", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, action_id: object) -> bool:
        with self._lock:
            return action_id in self._entries

    @staticmethod
    def _new_id() -> str:
        return f"action-{int(time.time() * 1000)}-{random_suffix(6)}"
