# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
The endless track rotation behind every /radio connection.

Per connection:

    select track → build upstream request → open it → relay bytes → repeat

Selection is shuffle (default), sequential (cursor + 1), or an explicit
track on the very first iteration.  Failures on algorithmic picks back off
and pick again; a failure on an explicitly requested track ends the
connection so the client notices.  The session entry is published once
bytes start flowing and is always removed when the loop exits.

Writes go straight to the listener's response, so the loop only advances
as fast as the client reads.
"""

import asyncio
import logging
import secrets
import time

import aiohttp

from .catalog import Catalog, Track
from .lib.config import Settings
from .stores import HistoryStore, SessionStore
from .upstream import RequestBuilder

logger = logging.getLogger(__name__)

RETRY_DELAY = 5.0           # seconds between failed attempts
SHORT_STREAM_BYTES = 1024   # fewer bytes than this looks like a failed transcode
SHORT_STREAM_SECONDS = 2.0  # ...and so does a stream shorter than this
CHUNK_SIZE = 16 * 1024


class ListenerGone(Exception):
    """The client stopped reading; nothing more can be sent."""


def new_session_id() -> str:
    return f"radio-{secrets.randbits(64):016x}"


class Radio:
    """Shared state for all connections: catalog, stores, upstream access."""

    def __init__(self, catalog: Catalog, builder: RequestBuilder,
                 http: aiohttp.ClientSession, *,
                 sessions: SessionStore | None = None,
                 history: HistoryStore | None = None,
                 retry_delay: float = RETRY_DELAY,
                 short_stream_bytes: int = SHORT_STREAM_BYTES,
                 short_stream_seconds: float = SHORT_STREAM_SECONDS,
                 read_timeout: float = 10.0,
                 chunk_size: int = CHUNK_SIZE,
                 sleep=asyncio.sleep):
        self.catalog = catalog
        self.builder = builder
        self.http = http
        self.sessions = sessions if sessions is not None else SessionStore()
        self.history = history if history is not None else HistoryStore()
        self.retry_delay = retry_delay
        self.short_stream_bytes = short_stream_bytes
        self.short_stream_seconds = short_stream_seconds
        self.read_timeout = read_timeout
        self.chunk_size = chunk_size
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, catalog: Catalog,
                      builder: RequestBuilder, http: aiohttp.ClientSession, **kwargs):
        kwargs.setdefault("history", HistoryStore(settings.history_size))
        return cls(
            catalog, builder, http,
            retry_delay=settings.retry_delay,
            short_stream_bytes=settings.short_stream_bytes,
            short_stream_seconds=settings.short_stream_seconds,
            read_timeout=settings.timeout,
            chunk_size=settings.chunk_size,
            **kwargs,
        )

    def stream(self, session_id: str | None = None, client_id: str = "anon", *,
               shuffle: bool = True, track_key: str | None = None,
               offset_ms: int = 0) -> "RadioStream":
        return RadioStream(self, session_id or new_session_id(), client_id,
                           shuffle=shuffle, track_key=track_key, offset_ms=offset_ms)


class RadioStream:
    """One listener's rotation.  Not shared between connections."""

    def __init__(self, radio: Radio, session_id: str, client_id: str, *,
                 shuffle: bool = True, track_key: str | None = None,
                 offset_ms: int = 0):
        self.radio = radio
        self.session_id = session_id
        self.client_id = client_id
        self.shuffle = shuffle
        self._pending_key = track_key
        self._pending_offset = max(int(offset_ms), 0)
        self._cursor: int | None = None

    async def run(self, write, connected=lambda: True):
        """Feed ``write(chunk)`` until the listener leaves or a requested track fails.

        *connected* is polled between tracks; a write failure also ends the loop.
        """
        with self.radio.sessions.lease(self.session_id):
            logger.info("Session %s started (client %s, %s)", self.session_id,
                        self.client_id, "shuffle" if self.shuffle else "sequential")
            try:
                while connected():
                    if not await self._play_next(write):
                        break
            except ListenerGone as e:
                logger.info("Listener for session %s went away: %s", self.session_id, e)
            finally:
                logger.info("Session %s ended", self.session_id)

    def select(self) -> tuple[Track, bool]:
        """Pick the next track.  Returns (track, is_specific_request)."""
        catalog = self.radio.catalog
        key, self._pending_key = self._pending_key, None
        specific = key is not None
        if specific:
            idx = catalog.index_of(key)
            if idx is None:
                logger.warning("Track %s not in catalog, picking at random", key)
                idx = catalog.random_index()
        elif self.shuffle or self._cursor is None:
            idx = catalog.random_index()
        else:
            idx = (self._cursor + 1) % len(catalog)
        self._cursor = idx
        return catalog[idx], specific

    async def _play_next(self, write) -> bool:
        """One SelectTrack → StreamBytes pass.  False ends the connection."""
        radio = self.radio
        track, specific = self.select()
        offset_ms, self._pending_offset = self._pending_offset, 0
        logger.info("Now Playing: %s - %s", track.artist, track.title)

        request = await radio.builder.build(track.key, self.session_id, offset_ms)
        if request is None:
            return await self._failed(track, specific)

        try:
            async with request.open(radio.http, radio.read_timeout) as resp:
                status = resp.status
                if 200 <= status < 300:
                    radio.sessions.upsert(self.session_id, track, time.time() - offset_ms / 1000)
                    radio.history.record(self.client_id, track)

                    started = time.monotonic()
                    sent = await self._relay(resp, write, track)
                    elapsed = time.monotonic() - started
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Failed to fetch track %s from Plex (session %s): %s",
                         track.key, self.session_id, str(e) or type(e).__name__)
            return await self._failed(track, specific)

        if not 200 <= status < 300:
            logger.warning("Plex returned HTTP %d for track %s (session %s)",
                           status, track.key, self.session_id)
            return await self._failed(track, specific)

        logger.debug("Track %s done: %d bytes in %.1fs", track.key, sent, elapsed)
        if sent < radio.short_stream_bytes or elapsed < radio.short_stream_seconds:
            logger.warning("Track %s finished too quickly (%d bytes, %.1fs, session %s). "
                           "Possible transcoding error or empty file.",
                           track.key, sent, elapsed, self.session_id)
            await radio.sleep(radio.retry_delay)
        return True

    async def _relay(self, resp: aiohttp.ClientResponse, write, track: Track) -> int:
        """Copy the upstream body to the listener.  Returns bytes sent."""
        sent = 0
        try:
            async for chunk in resp.content.iter_chunked(self.radio.chunk_size):
                try:
                    await write(chunk)
                except ConnectionError as e:
                    raise ListenerGone(str(e) or type(e).__name__) from e
                sent += len(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError) as e:
            logger.error("Error reading track %s from Plex after %d bytes (session %s): %s",
                         track.key, sent, self.session_id, str(e) or type(e).__name__)
        return sent

    async def _failed(self, track: Track, specific: bool) -> bool:
        if specific:
            logger.warning("Requested track %s failed, closing session %s",
                           track.key, self.session_id)
            return False
        await self.radio.sleep(self.radio.retry_delay)
        return True
