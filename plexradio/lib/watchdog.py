# Plex Radio
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""Systemd watchdog heartbeat for the radio service.

Sends WATCHDOG=1 to the systemd notify socket at regular intervals, plus a
STATUS= line so `systemctl status` shows how many listeners are tuned in.
Silently no-ops when NOTIFY_SOCKET is unset (macOS / dev mode).

Usage:
    from plexradio.lib.watchdog import watchdog_loop
    asyncio.create_task(watchdog_loop(status=lambda: "3 listeners"))
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger(__name__)


def sd_notify(msg: str, notify_socket: str | None = None) -> bool:
    """Send a notification message to the systemd notify socket.

    Returns False when there is no socket to talk to.
    """
    addr = notify_socket or os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    finally:
        sock.close()
    return True


async def watchdog_loop(interval: float = 20, status=None):
    """Send WATCHDOG=1 every *interval* seconds.  Call as asyncio.create_task().

    Also sends READY=1 on first invocation so systemd knows the catalog is
    loaded and the listener is bound (requires Type=notify in the unit file).
    *status* is an optional callable whose text is reported with each beat.
    """
    sd_notify("READY=1")
    logger.info("Watchdog started (interval=%ss)", interval)
    while True:
        msg = "WATCHDOG=1"
        if status is not None:
            msg += f"\nSTATUS={status()}"
        sd_notify(msg)
        await asyncio.sleep(interval)
