"""
Lib - plumbing shared by the radio service modules.

  config.py        - JSON config + environment overrides
  plex.py          - async Plex API client
  service_base.py  - aiohttp service lifecycle
  watchdog.py      - systemd notify heartbeat
"""
