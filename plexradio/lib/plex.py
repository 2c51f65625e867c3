# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Thin async client for the Plex Media Server HTTP API.

Only the handful of endpoints the radio needs:

    GET /library/sections                       → music library detection
    GET /library/sections/{id}/all?type=10      → track listing (10 = track)
    GET /library/metadata/{key}                 → Media/Part file keys
    GET /music/:/transcode/universal/start.mp3  → transcoded audio

Usage:
    async with PlexClient("http://plex:32400", token) as plex:
        sections = await plex.list_sections()
"""

import asyncio
import logging

import aiohttp

logger = logging.getLogger(__name__)

TRACK_TYPE = "10"
MUSIC_SECTION_TYPE = "artist"

CLIENT_HEADERS = {
    "X-Plex-Client-Identifier": "plex-radio",
    "X-Plex-Product": "Plex Radio",
    "X-Plex-Version": "1.0",
    "X-Plex-Platform": "Generic",
    "X-Plex-Device": "Plex Radio",
}


class PlexError(Exception):
    """A Plex API call failed (transport, status or payload)."""

    def __init__(self, message: str, url: str = "", status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class PlexClient:
    """Owns the aiohttp session used for every upstream request."""

    def __init__(self, base_url: str, token: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("PlexClient not started")
        return self._session

    async def start(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"X-Plex-Token": self.token, **CLIENT_HEADERS},
            )
            logger.info("Plex client ready -> %s", self.base_url)

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def get_json(self, path: str, params: dict | None = None) -> dict:
        """GET a Plex endpoint as JSON.  Raises PlexError on any failure."""
        url = self.url(path)
        try:
            async with self.session.get(
                url, params=params, headers={"Accept": "application/json"}
            ) as resp:
                if resp.status >= 400:
                    raise PlexError(f"Plex returned HTTP {resp.status} for {path}",
                                    url=url, status=resp.status)
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PlexError(f"Plex request failed for {path}: {str(e) or type(e).__name__}",
                            url=url) from e
        except ValueError as e:
            raise PlexError(f"Plex sent invalid JSON for {path}: {e}", url=url) from e

    # ── Endpoints ──

    async def list_sections(self) -> list[dict]:
        data = await self.get_json("/library/sections")
        return _container(data).get("Directory") or []

    async def list_tracks(self, section_id: str) -> list[dict]:
        data = await self.get_json(f"/library/sections/{section_id}/all",
                                   params={"type": TRACK_TYPE})
        return _container(data).get("Metadata") or []

    async def part_key(self, track_key: str) -> str | None:
        """Return the first Media/Part file key for a track, or None."""
        data = await self.get_json(f"/library/metadata/{track_key}")
        metadata = _container(data).get("Metadata") or []
        try:
            return metadata[0]["Media"][0]["Part"][0]["key"] or None
        except (IndexError, KeyError, TypeError):
            return None


def _container(data) -> dict:
    if not isinstance(data, dict) or not isinstance(data.get("MediaContainer"), dict):
        raise PlexError("Plex response has no MediaContainer")
    return data["MediaContainer"]
