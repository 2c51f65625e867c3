# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
ServiceBase - shared plumbing for an aiohttp service process.

Subclass contract:

    class MyService(ServiceBase):
        name = "my-service"   # log / status name
        port = 3000           # HTTP port

        def add_routes(self, app):
            app.router.add_get("/thing", self.handle_thing)

Optional overrides:
    prepare()        - runs before the listener binds; raise to abort startup
    on_start()       - called after HTTP server is up
    on_stop()        - called during shutdown
    handle_status()  - return dict for GET /status
    add_routes(app)  - add extra aiohttp routes
"""

import asyncio
import logging
import signal

from aiohttp import web

log = logging.getLogger(__name__)


@web.middleware
async def cors_middleware(request, handler):
    if request.method == "OPTIONS":
        resp = web.Response()
    else:
        resp = await handler(request)
    if resp.prepared:
        # Streaming responses set their own headers before prepare().
        return resp
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return resp


class ServiceBase:
    # ── Subclass must set these ──
    name: str = ""
    port: int = 0
    host: str = "0.0.0.0"

    def __init__(self):
        self._runner: web.AppRunner | None = None

    # ── HTTP app ──

    def build_app(self) -> web.Application:
        """Create the aiohttp app with the shared routes plus the subclass's."""
        app = web.Application(middlewares=[cors_middleware])
        app.router.add_get("/status", self._handle_status_route)
        self.add_routes(app)
        return app

    async def start(self):
        """Run prepare(), then bind the listener and call on_start()."""
        await self.prepare()

        # Cancel streaming handlers as soon as the client hangs up.
        self._runner = web.AppRunner(self.build_app(), handler_cancellation=True)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        log.info("%s listening on http://%s:%d", self.name, self.host, self.port)

        await self.on_start()

    async def stop(self):
        """Shutdown hook - override on_stop() for cleanup."""
        await self.on_stop()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def run(self):
        """Convenience entry-point: start + wait for signal + stop."""
        try:
            await self.start()
            stop_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, stop_event.set)
            await stop_event.wait()
        finally:
            await self.stop()

    # ── Route handlers (delegate to subclass) ──

    async def _handle_status_route(self, request):
        result = await self.handle_status()
        return web.json_response(result)

    # ── Subclass hooks (override as needed) ──

    async def prepare(self):
        """Called before the HTTP server binds."""

    async def on_start(self):
        """Called after HTTP server is up."""

    async def on_stop(self):
        """Called during shutdown."""

    async def handle_status(self) -> dict:
        """Return status dict for GET /status."""
        return {"service": self.name}

    def add_routes(self, app: web.Application):
        """Add extra aiohttp routes to the app."""
