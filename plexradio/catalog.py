# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Track catalog - the fixed rotation the radio picks from.

Loaded once at startup from a Plex music library and never mutated
afterwards.  Loading is startup-only; the streaming loop only reads.
"""

import logging
import random
from typing import NamedTuple

from .lib.plex import MUSIC_SECTION_TYPE, PlexClient, PlexError

logger = logging.getLogger(__name__)


class CatalogError(PlexError):
    """No usable catalog: empty library or no music section."""


class Track(NamedTuple):
    key: str            # Plex ratingKey
    title: str
    artist: str
    duration: int = 0   # ms, 0 when Plex doesn't know

    @classmethod
    def from_plex(cls, meta: dict) -> "Track":
        return cls(
            key=str(meta["ratingKey"]),
            title=meta.get("title") or "",
            artist=meta.get("grandparentTitle") or "",
            duration=int(meta.get("duration") or 0),
        )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "title": self.title,
            "artist": self.artist,
            "duration": self.duration,
        }


class Catalog:
    """Immutable, ordered, non-empty list of tracks."""

    def __init__(self, tracks):
        self._tracks = tuple(tracks)
        if not self._tracks:
            raise CatalogError("Catalog is empty - check the library section id")
        self._index = {}
        for i, track in enumerate(self._tracks):
            self._index.setdefault(track.key, i)

    def __len__(self):
        return len(self._tracks)

    def __getitem__(self, index) -> Track:
        return self._tracks[index]

    def __iter__(self):
        return iter(self._tracks)

    def index_of(self, key: str) -> int | None:
        return self._index.get(key)

    def random_index(self) -> int:
        return random.randrange(len(self._tracks))


async def detect_section(plex: PlexClient) -> str:
    """Return the key of the first music library on the server."""
    for section in await plex.list_sections():
        if section.get("type") == MUSIC_SECTION_TYPE:
            try:
                key = str(section["key"])
            except KeyError as e:
                raise CatalogError(
                    f"Music library '{section.get('title', '')}' has no section key"
                ) from e
            logger.info("Auto-detected music library: '%s' (ID: %s)",
                        section.get("title", ""), key)
            return key
    raise CatalogError(
        f"No music library (type='{MUSIC_SECTION_TYPE}') found on this Plex server"
    )


async def load(plex: PlexClient, section_id: str | None = None) -> Catalog:
    """Fetch every track of a library section.  Raises PlexError/CatalogError."""
    if not section_id:
        logger.info("No section id configured, auto-detecting music library...")
        section_id = await detect_section(plex)

    logger.info("Fetching track list from library section %s", section_id)
    try:
        tracks = [Track.from_plex(m) for m in await plex.list_tracks(section_id)]
    except (KeyError, TypeError, ValueError) as e:
        raise PlexError(f"Unexpected track entry in section {section_id}: {e}") from e

    catalog = Catalog(tracks)
    logger.info("Loaded %d tracks into rotation", len(catalog))
    return catalog
