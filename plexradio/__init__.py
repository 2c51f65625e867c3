"""
Plex Radio - an endless personal radio stream backed by a Plex music library.

Every /radio listener gets its own rotation of tracks, fetched from Plex
either as the original file (passthrough) or through Plex's universal
transcoder, and relayed to the client one track after another.

Modules:
  catalog.py   - track list loaded once at startup
  stores.py    - per-session "now playing" and per-client history
  upstream.py  - builds the Plex request for a track
  radio.py     - the per-connection rotation loop
  queries.py   - now-playing and search views
  service.py   - aiohttp service and entry point
"""

__version__ = "1.0.0"
