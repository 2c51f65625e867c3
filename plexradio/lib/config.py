# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Shared configuration loader for the Plex radio service.

Loads a single JSON config file per host.  Search order:
  1. /etc/plexradio/config.json    (deployed install)
  2. config.json                   (CWD - handy for local dev)
  3. ../../config/default.json     (repo fallback)

Secrets (PLEX_TOKEN) stay in environment variables, loaded from
/etc/plexradio/secrets.env by systemd EnvironmentFile.  The variables the
standalone server always honoured (PLEX_URL, PLEX_SECTION_ID, PLEX_BITRATE,
PLEX_AUDIO_BOOST, PLEX_PASSTHROUGH, PORT) override the JSON file.

Usage:
    from plexradio.lib.config import cfg, load_settings

    bitrate  = cfg("radio", "bitrate", default=320)
    settings = load_settings()   # resolved + validated, raises ConfigError
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/plexradio/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]


class ConfigError(Exception):
    """Configuration is missing or unusable; the service must not start."""


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    plex = config.get("plex") or {}
    if not plex.get("url") and not os.getenv("PLEX_URL"):
        logger.warning("Config %s: missing plex.url and PLEX_URL is unset", path)
    radio = config.get("radio") or {}
    if radio.get("passthrough") and "bitrate" in radio:
        logger.warning("Config %s: radio.bitrate is ignored in passthrough mode", path)
    for key in ("retry_delay", "short_stream_seconds"):
        val = radio.get(key)
        if isinstance(val, (int, float)) and val < 0:
            logger.warning("Config %s: negative radio.%s (%s)", path, key, val)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _SEARCH_PATHS:
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found - using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("server")                  → config["server"]
    cfg("plex", "url")             → config["plex"]["url"]
    cfg("radio", "bitrate", default=320)  → config["radio"]["bitrate"] or 320
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()


def _number(name, raw, kind):
    try:
        return kind(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number (got {raw!r})") from None


class Settings:
    """Resolved runtime settings.  Everything the radio needs, in one place."""

    def __init__(self, plex_url: str, plex_token: str, *,
                 section_id: str | None = None,
                 passthrough: bool = False,
                 bitrate: int = 320,
                 audio_boost: int = 100,
                 port: int = 3000,
                 timeout: float = 10.0,
                 retry_delay: float = 5.0,
                 short_stream_bytes: int = 1024,
                 short_stream_seconds: float = 2.0,
                 history_size: int = 10,
                 search_limit: int = 50,
                 chunk_size: int = 16 * 1024):
        self.plex_url = plex_url.rstrip("/")
        self.plex_token = plex_token
        self.section_id = section_id or None
        self.passthrough = passthrough
        self.bitrate = bitrate
        self.audio_boost = audio_boost
        self.port = port
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.short_stream_bytes = short_stream_bytes
        self.short_stream_seconds = short_stream_seconds
        self.history_size = history_size
        self.search_limit = search_limit
        self.chunk_size = chunk_size

    @property
    def mode(self) -> str:
        return "passthrough" if self.passthrough else "transcode"


def load_settings() -> Settings:
    """Merge config.json with the environment.  Raises ConfigError."""
    url = os.getenv("PLEX_URL") or cfg("plex", "url", default="")
    token = os.getenv("PLEX_TOKEN", "")
    if not url:
        raise ConfigError("PLEX_URL must be set (env or plex.url in config.json)")
    if not token:
        raise ConfigError("PLEX_TOKEN must be set")

    section_id = os.getenv("PLEX_SECTION_ID") or cfg("plex", "section_id", default="")

    passthrough_env = os.getenv("PLEX_PASSTHROUGH")
    if passthrough_env is not None:
        passthrough = passthrough_env == "true"
    else:
        passthrough = bool(cfg("radio", "passthrough", default=False))

    return Settings(
        url,
        token,
        section_id=str(section_id) if section_id else None,
        passthrough=passthrough,
        bitrate=_number("PLEX_BITRATE",
                        os.getenv("PLEX_BITRATE") or cfg("radio", "bitrate", default=320), int),
        audio_boost=_number("PLEX_AUDIO_BOOST",
                            os.getenv("PLEX_AUDIO_BOOST") or cfg("radio", "audio_boost", default=100), int),
        port=_number("PORT", os.getenv("PORT") or cfg("server", "port", default=3000), int),
        timeout=_number("plex.timeout", cfg("plex", "timeout", default=10), float),
        retry_delay=_number("radio.retry_delay", cfg("radio", "retry_delay", default=5), float),
        short_stream_bytes=_number("radio.short_stream_bytes",
                                   cfg("radio", "short_stream_bytes", default=1024), int),
        short_stream_seconds=_number("radio.short_stream_seconds",
                                     cfg("radio", "short_stream_seconds", default=2), float),
        history_size=_number("radio.history_size", cfg("radio", "history_size", default=10), int),
        search_limit=_number("radio.search_limit", cfg("radio", "search_limit", default=50), int),
        chunk_size=_number("radio.chunk_size", cfg("radio", "chunk_size", default=16 * 1024), int),
    )
