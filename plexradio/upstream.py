# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Builds the Plex request that yields audio bytes for one track.

Two delivery modes, fixed at startup:

  passthrough  resolve the original file via /library/metadata/{key} and
               GET it unmodified
  transcode    GET the universal transcoder with bitrate, boost, seek
               offset and the listener's session id

build() never raises.  None means "skip this track"; retry policy belongs
to the caller.
"""

import asyncio
import logging

import aiohttp

from .lib.plex import PlexClient, PlexError

logger = logging.getLogger(__name__)

TRANSCODE_PATH = "/music/:/transcode/universal/start.mp3"


class UpstreamRequest:
    """A ready-to-send GET against Plex."""

    def __init__(self, url: str, params: dict | None = None, headers: dict | None = None):
        self.url = url
        self.params = params or {}
        self.headers = headers or {}

    def open(self, session: aiohttp.ClientSession, read_timeout: float):
        """Send the request.  Use as ``async with req.open(...) as resp``.

        Streams can run for as long as the track lasts, so only connecting
        and each individual read are bounded.
        """
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=read_timeout,
                                        sock_read=read_timeout)
        return session.get(self.url, params=self.params, headers=self.headers,
                           timeout=timeout)

    def __repr__(self):
        return f"UpstreamRequest({self.url!r}, params={self.params!r})"


class RequestBuilder:
    def __init__(self, plex: PlexClient, *, passthrough: bool = False,
                 bitrate: int = 320, audio_boost: int = 100):
        self.plex = plex
        self.passthrough = passthrough
        self.bitrate = bitrate
        self.audio_boost = audio_boost

    async def build(self, track_key: str, session_id: str,
                    offset_ms: int = 0) -> UpstreamRequest | None:
        if self.passthrough:
            return await self._passthrough(track_key)
        return self._transcode(track_key, session_id, offset_ms)

    async def _passthrough(self, track_key: str) -> UpstreamRequest | None:
        try:
            part_key = await self.plex.part_key(track_key)
        except (PlexError, asyncio.TimeoutError) as e:
            logger.error("Failed to resolve file for track %s: %s. Skipping.", track_key, e)
            return None
        if not part_key:
            logger.error("Track %s has no media part. Skipping.", track_key)
            return None
        return UpstreamRequest(self.plex.url(part_key))

    def _transcode(self, track_key: str, session_id: str, offset_ms: int) -> UpstreamRequest:
        source = (f"{self.plex.base_url}/library/metadata/{track_key}"
                  f"?X-Plex-Token={self.plex.token}")
        return UpstreamRequest(
            self.plex.url(TRANSCODE_PATH),
            params={
                "path": source,
                "mediaIndex": "0",
                "partIndex": "0",
                "protocol": "http",
                "offset": str(max(offset_ms, 0) // 1000),
                "fastSeek": "1",
                "directPlay": "0",
                "directStream": "1",
                "audioBoost": str(self.audio_boost),
                "maxAudioBitrate": str(self.bitrate),
                "context": "static",
                "session": session_id,
            },
            headers={"X-Plex-Session-Id": session_id},
        )
