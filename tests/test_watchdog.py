"""
Tests for the systemd notify heartbeat (plexradio.lib.watchdog)
"""
import asyncio
import socket

import pytest

from plexradio.lib.watchdog import sd_notify, watchdog_loop


@pytest.fixture
def notify_socket(tmp_path, monkeypatch):
    path = str(tmp_path / "notify.sock")
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    sock.bind(path)
    sock.settimeout(2)
    monkeypatch.setenv("NOTIFY_SOCKET", path)
    yield sock
    sock.close()


def test_no_socket_is_a_no_op():
    assert sd_notify("READY=1") is False


def test_sends_datagram(notify_socket):
    assert sd_notify("READY=1") is True
    assert notify_socket.recv(1024) == b"READY=1"


async def test_loop_reports_ready_then_status(notify_socket):
    task = asyncio.create_task(watchdog_loop(interval=60, status=lambda: "2 listeners"))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert notify_socket.recv(1024) == b"READY=1"
    assert notify_socket.recv(1024) == b"WATCHDOG=1\nSTATUS=2 listeners"
