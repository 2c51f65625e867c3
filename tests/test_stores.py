"""
Tests for the shared listener state (plexradio.stores)
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import TRACKS
from plexradio.catalog import Track
from plexradio.stores import HISTORY_SIZE, HistoryStore, SessionStore


class TestSessionStore:
    """Tests for SessionStore"""

    def test_upsert_get_remove(self):
        store = SessionStore()
        store.upsert("s1", TRACKS[0], 1000.0)
        assert store.get("s1") == (TRACKS[0], 1000.0)
        store.upsert("s1", TRACKS[1], 2000.0)
        assert store.get("s1") == (TRACKS[1], 2000.0)
        assert len(store) == 1
        store.remove("s1")
        assert store.get("s1") is None

    def test_remove_unknown_is_harmless(self):
        SessionStore().remove("ghost")

    def test_lease_removes_on_normal_exit(self):
        store = SessionStore()
        with store.lease("s1"):
            store.upsert("s1", TRACKS[0])
            assert "s1" in store
        assert "s1" not in store

    def test_lease_removes_on_error(self):
        store = SessionStore()
        with pytest.raises(ValueError):
            with store.lease("s1"):
                store.upsert("s1", TRACKS[0])
                raise ValueError("stream blew up")
        assert store.get("s1") is None

    def test_lease_leaves_other_sessions_alone(self):
        store = SessionStore()
        store.upsert("other", TRACKS[1])
        with store.lease("s1"):
            store.upsert("s1", TRACKS[0])
        assert store.get("other")[0] == TRACKS[1]


class TestHistoryStore:
    """Tests for HistoryStore"""

    def test_record_prepends(self):
        history = HistoryStore()
        for track in TRACKS[:3]:
            history.record("c1", track)
        assert history.get("c1") == [TRACKS[2], TRACKS[1], TRACKS[0]]

    def test_bounded_to_ten(self):
        history = HistoryStore()
        played = [Track(str(i), f"Song {i}", "Band") for i in range(25)]
        for n, track in enumerate(played, 1):
            history.record("c1", track)
            assert len(history.get("c1")) == min(n, HISTORY_SIZE)
        assert history.get("c1") == played[::-1][:HISTORY_SIZE]

    def test_unknown_client_is_empty(self):
        assert HistoryStore().get("nobody") == []

    def test_get_returns_snapshot(self):
        history = HistoryStore()
        history.record("c1", TRACKS[0])
        snapshot = history.get("c1")
        snapshot.clear()
        assert history.get("c1") == [TRACKS[0]]

    def test_clients_are_independent(self):
        history = HistoryStore()
        history.record("a", TRACKS[0])
        history.record("b", TRACKS[1])
        assert history.get("a") == [TRACKS[0]]
        assert history.get("b") == [TRACKS[1]]
        assert len(history) == 2

    def test_upsert_truncates_and_remove(self):
        history = HistoryStore(size=2)
        history.upsert("c1", TRACKS)
        assert history.get("c1") == TRACKS[:2]
        history.remove("c1")
        assert history.get("c1") == []

    def test_concurrent_records_keep_bound(self):
        history = HistoryStore()

        def play(n):
            for i in range(200):
                history.record("shared", Track(f"{n}-{i}", "t", "a"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(play, range(8)))
        assert len(history.get("shared")) == HISTORY_SIZE
