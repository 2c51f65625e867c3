# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""Read-only views for UI polling: what's playing, and catalog search."""

import time

from .catalog import Catalog
from .stores import HistoryStore, SessionStore

SEARCH_LIMIT = 50
MIN_QUERY_LENGTH = 2


def now_playing(sessions: SessionStore, history: HistoryStore,
                session_id: str, client_id: str = "anon", now: float | None = None) -> dict | None:
    """Current track, elapsed ms and earlier history, or None for unknown sessions.

    The newest history entry is the track playing now, so it is left out.
    """
    entry = sessions.get(session_id)
    if entry is None:
        return None
    track, started_at = entry
    if now is None:
        now = time.time()
    return {
        **track.to_dict(),
        "elapsed": max(int((now - started_at) * 1000), 0),
        "history": [t.to_dict() for t in history.get(client_id)[1:]],
    }


def search(catalog: Catalog, query: str, limit: int = SEARCH_LIMIT) -> list[dict]:
    """Case-insensitive substring match on title or artist, in catalog order."""
    query = (query or "").lower()
    if len(query) < MIN_QUERY_LENGTH:
        return []
    results = []
    for track in catalog:
        if query in track.title.lower() or query in track.artist.lower():
            results.append(track.to_dict())
            if len(results) >= limit:
                break
    return results
