"""
Shared fixtures: an in-process fake Plex server and a radio wired to it.
"""
import asyncio

import pytest
from aiohttp import web

from plexradio.catalog import Catalog, Track
from plexradio.lib import config
from plexradio.lib.plex import PlexClient
from plexradio.radio import Radio
from plexradio.upstream import TRANSCODE_PATH, RequestBuilder

TOKEN = "test-token"

TRACKS = [
    Track("101", "Blue Monday", "New Order", 447000),
    Track("102", "Ceremony", "New Order", 264000),
    Track("103", "Atmosphere", "Joy Division", 250000),
    Track("104", "Transmission", "Joy Division", 217000),
]


class FakePlex:
    """Just enough of a Plex Media Server for the radio."""

    def __init__(self):
        self.requests = []          # (path, query dict) in arrival order
        self.sections = [
            {"key": "1", "type": "movie", "title": "Movies"},
            {"key": "3", "type": "artist", "title": "Music"},
        ]
        self.tracks = [
            {"ratingKey": t.key, "title": t.title, "grandparentTitle": t.artist,
             "duration": t.duration, "type": "track"}
            for t in TRACKS
        ]
        self.parts = {t.key: f"/library/parts/{t.key}/file.mp3" for t in TRACKS}
        self.audio = b"\xff\xfb" * 2048     # 4 KiB per track
        self.fail_next = 0                  # audio requests answered with 500
        self.truncate_next = 0              # audio requests cut off mid-body
        self.metadata_status = 200
        self.metadata_body = None           # raw text override for /library/metadata
        self.errors = {}                    # path → forced HTTP status

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self._auth])
        app.router.add_get("/library/sections", self.handle_sections)
        app.router.add_get("/library/sections/{id}/all", self.handle_all)
        app.router.add_get("/library/metadata/{key}", self.handle_metadata)
        app.router.add_get("/library/parts/{key}/file.mp3", self.handle_audio)
        app.router.add_get(TRANSCODE_PATH, self.handle_audio)
        return app

    @web.middleware
    async def _auth(self, request, handler):
        self.requests.append((request.path, dict(request.query)))
        if request.headers.get("X-Plex-Token") != TOKEN:
            return web.Response(status=401)
        if request.path in self.errors:
            return web.Response(status=self.errors[request.path])
        return await handler(request)

    @property
    def played(self) -> list[str]:
        """Track keys of every audio request, in order."""
        keys = []
        for path, query in self.requests:
            if path == TRANSCODE_PATH:
                keys.append(query["path"].split("/library/metadata/")[1].split("?")[0])
            elif path.startswith("/library/parts/"):
                keys.append(path.split("/")[3])
        return keys

    async def handle_sections(self, request):
        return web.json_response({"MediaContainer": {"Directory": self.sections}})

    async def handle_all(self, request):
        if request.query.get("type") != "10":
            return web.Response(status=400)
        return web.json_response({"MediaContainer": {"Metadata": self.tracks}})

    async def handle_metadata(self, request):
        if self.metadata_status != 200:
            return web.Response(status=self.metadata_status)
        if self.metadata_body is not None:
            return web.Response(text=self.metadata_body, content_type="application/json")
        key = request.match_info["key"]
        part = self.parts.get(key)
        media = [{"Part": [{"key": part}]}] if part else []
        return web.json_response(
            {"MediaContainer": {"Metadata": [{"ratingKey": key, "Media": media}]}}
        )

    async def handle_audio(self, request):
        if self.fail_next:
            self.fail_next -= 1
            return web.Response(status=500, text="transcoder exploded")
        if self.truncate_next:
            self.truncate_next -= 1
            resp = web.StreamResponse(headers={"Content-Type": "audio/mpeg"})
            resp.content_length = len(self.audio)
            await resp.prepare(request)
            await resp.write(self.audio[:1000])
            request.transport.close()
            return resp
        return web.Response(body=self.audio, content_type="audio/mpeg")


class SleepRecorder:
    """Stands in for asyncio.sleep; remembers the delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


class Listener:
    """Collects streamed bytes; hangs up once max_bytes have arrived."""

    def __init__(self, max_bytes=None):
        self.max_bytes = max_bytes
        self.received = bytearray()

    async def write(self, chunk):
        if self.max_bytes is not None and len(self.received) >= self.max_bytes:
            raise ConnectionResetError("listener hung up")
        self.received += chunk


class Countdown:
    """connected() callable that stays true for n loop iterations."""

    def __init__(self, n):
        self.n = n

    def __call__(self):
        self.n -= 1
        return self.n >= 0


@pytest.fixture(autouse=True)
def empty_config(monkeypatch):
    """Never read a real config.json during tests."""
    monkeypatch.setattr(config, "_config", {})
    for var in ("PLEX_URL", "PLEX_TOKEN", "PLEX_SECTION_ID", "PLEX_BITRATE",
                "PLEX_AUDIO_BOOST", "PLEX_PASSTHROUGH", "PORT", "NOTIFY_SOCKET"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def fake_plex():
    return FakePlex()


@pytest.fixture
async def plex_server(aiohttp_server, fake_plex):
    return await aiohttp_server(fake_plex.app())


@pytest.fixture
def plex_url(plex_server):
    return str(plex_server.make_url("")).rstrip("/")


@pytest.fixture
async def plex(plex_url):
    client = PlexClient(plex_url, TOKEN)
    await client.start()
    yield client
    await client.close()


@pytest.fixture
def catalog():
    return Catalog(TRACKS)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def make_radio(plex, catalog, sleeper):
    """Radio factory; short-stream checks only look at bytes unless overridden."""
    def factory(passthrough=False, **kwargs):
        builder = RequestBuilder(plex, passthrough=passthrough)
        kwargs.setdefault("short_stream_seconds", 0)
        kwargs.setdefault("sleep", sleeper)
        return Radio(catalog, builder, plex.session, **kwargs)
    return factory
