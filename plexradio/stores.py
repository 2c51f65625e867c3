# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
In-memory listener state shared between streaming connections.

SessionStore  session id → (current track, started_at)
HistoryStore  client id  → most-recent-first list of tracks, bounded

Both live for the process lifetime only.  Each store has its own lock,
held for a single read or update and never across I/O.
"""

import threading
import time
from contextlib import contextmanager

from .catalog import Track

HISTORY_SIZE = 10


class SessionStore:
    """What each open /radio connection is playing right now."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: dict[str, tuple[Track, float]] = {}

    def upsert(self, session_id: str, track: Track, started_at: float | None = None):
        if started_at is None:
            started_at = time.time()
        with self._lock:
            self._sessions[session_id] = (track, started_at)

    def get(self, session_id: str) -> tuple[Track, float] | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)

    @contextmanager
    def lease(self, session_id: str):
        """Scope a session id to a block; its entry is dropped on any exit."""
        try:
            yield session_id
        finally:
            self.remove(session_id)

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id):
        with self._lock:
            return session_id in self._sessions


class HistoryStore:
    """Recently played tracks per client, newest first."""

    def __init__(self, size: int = HISTORY_SIZE):
        self.size = size
        self._lock = threading.Lock()
        self._history: dict[str, list[Track]] = {}

    def record(self, client_id: str, track: Track):
        with self._lock:
            entries = self._history.setdefault(client_id, [])
            entries.insert(0, track)
            del entries[self.size:]

    def get(self, client_id: str) -> list[Track]:
        """Snapshot copy; empty for unknown clients."""
        with self._lock:
            return list(self._history.get(client_id, ()))

    def upsert(self, client_id: str, tracks):
        with self._lock:
            self._history[client_id] = list(tracks)[:self.size]

    def remove(self, client_id: str):
        with self._lock:
            self._history.pop(client_id, None)

    def __len__(self):
        with self._lock:
            return len(self._history)
