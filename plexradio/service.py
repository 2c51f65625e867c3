#!/usr/bin/env python3
# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Plex Radio service (plex-radio)

Loads the track list of a Plex music library once, then serves an endless
MP3 stream per listener plus small JSON views for a player UI.

    GET /radio?session=&client_id=&shuffle=&track=&offset=
    GET /now-playing?session=&client_id=
    GET /search?q=
    GET /health
    GET /status

Port: 3000 (PORT / server.port)
"""

import asyncio
import logging
import os

from aiohttp import web

from . import catalog as catalog_mod
from .lib.config import ConfigError, Settings, load_settings
from .lib.plex import PlexClient, PlexError
from .lib.service_base import ServiceBase
from .lib.watchdog import watchdog_loop
from .queries import now_playing, search
from .radio import Radio
from .upstream import RequestBuilder

log = logging.getLogger("plex-radio")

STREAM_HEADERS = {
    "Content-Type": "audio/mpeg",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
}


def _listener_connected(request: web.Request) -> bool:
    transport = request.transport
    return transport is not None and not transport.is_closing()


def _offset(raw: str | None) -> int:
    try:
        return max(int(raw), 0) if raw else 0
    except ValueError:
        return 0


class RadioService(ServiceBase):
    name = "plex-radio"

    def __init__(self, settings: Settings, *, plex: PlexClient | None = None,
                 radio: Radio | None = None):
        super().__init__()
        self.settings = settings
        self.port = settings.port
        self.plex = plex or PlexClient(settings.plex_url, settings.plex_token,
                                       timeout=settings.timeout)
        self.radio = radio
        self._watchdog_task = None

    async def prepare(self):
        """Load the catalog.  Any failure here keeps the listener unbound."""
        if self.radio is not None:
            return
        await self.plex.start()
        catalog = await catalog_mod.load(self.plex, self.settings.section_id)
        builder = RequestBuilder(
            self.plex,
            passthrough=self.settings.passthrough,
            bitrate=self.settings.bitrate,
            audio_boost=self.settings.audio_boost,
        )
        self.radio = Radio.from_settings(self.settings, catalog, builder, self.plex.session)
        log.info("Streaming in %s mode (%d kbps, boost %d)", self.settings.mode,
                 self.settings.bitrate, self.settings.audio_boost)

    async def on_start(self):
        self._watchdog_task = asyncio.create_task(
            watchdog_loop(status=lambda: f"{len(self.radio.sessions)} listeners")
        )

    async def on_stop(self):
        if self._watchdog_task:
            self._watchdog_task.cancel()
            self._watchdog_task = None
        await self.plex.close()

    def add_routes(self, app: web.Application):
        app.router.add_get("/radio", self.handle_radio)
        app.router.add_get("/now-playing", self.handle_now_playing)
        app.router.add_get("/search", self.handle_search)
        app.router.add_get("/health", self.handle_health)

    async def handle_status(self) -> dict:
        radio = self.radio
        return {
            "service": self.name,
            "mode": self.settings.mode,
            "section": self.settings.section_id,
            "tracks": len(radio.catalog) if radio else 0,
            "listeners": len(radio.sessions) if radio else 0,
        }

    # ── Routes ──

    async def handle_radio(self, request: web.Request) -> web.StreamResponse:
        q = request.query
        stream = self.radio.stream(
            q.get("session") or None,
            q.get("client_id") or "anon",
            shuffle=q.get("shuffle") != "false",
            track_key=q.get("track") or None,
            offset_ms=_offset(q.get("offset")),
        )
        resp = web.StreamResponse(status=200, headers=STREAM_HEADERS)
        await resp.prepare(request)
        await stream.run(resp.write, connected=lambda: _listener_connected(request))
        try:
            await resp.write_eof()
        except ConnectionError:
            pass
        return resp

    async def handle_now_playing(self, request: web.Request) -> web.Response:
        info = now_playing(
            self.radio.sessions,
            self.radio.history,
            request.query.get("session", ""),
            request.query.get("client_id") or "anon",
        )
        if info is None:
            return web.json_response({"error": "unknown session"}, status=404)
        return web.json_response(info)

    async def handle_search(self, request: web.Request) -> web.Response:
        results = search(self.radio.catalog, request.query.get("q", ""),
                         limit=self.settings.search_limit)
        return web.json_response(results)

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.Response(text="OK")


def main():
    logging.basicConfig(
        level=logging.DEBUG if os.getenv("PLEXRADIO_DEBUG") == "1" else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        settings = load_settings()
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        raise SystemExit(1)

    log.info("Plex URL: %s", settings.plex_url)
    try:
        asyncio.run(RadioService(settings).run())
    except PlexError as e:
        log.error("Startup failed: %s", e)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
