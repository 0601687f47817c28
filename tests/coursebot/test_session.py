"""Tests for SessionStore: tokens, history, delivery flag and eviction."""

import random
from pathlib import Path

import pytest

from coursebot.errors import SessionExpired
from coursebot.session import SessionStore, encode_key


class TestEncodeKey:
    def test_base36(self):
        assert encode_key(0) == "0"
        assert encode_key(35) == "z"
        assert encode_key(36) == "10"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            encode_key(-1)


class TestActionCache:
    def test_resolve_returns_cached_path(self):
        store = SessionStore()
        key = store.cache_path(1, Path("/m/2023"))
        assert store.resolve(1, key) == Path("/m/2023")

    def test_same_path_reuses_key(self):
        store = SessionStore()
        assert store.cache_path(1, Path("/m/a")) == store.cache_path(1, Path("/m/a"))

    def test_distinct_paths_distinct_keys(self):
        store = SessionStore()
        keys = {store.cache_path(1, Path(f"/m/{i}")) for i in range(50)}
        assert len(keys) == 50

    def test_unknown_key_expired(self):
        store = SessionStore()
        store.get_or_create(1)
        with pytest.raises(SessionExpired):
            store.resolve(1, "zz")

    def test_unknown_chat_expired(self):
        with pytest.raises(SessionExpired):
            SessionStore().resolve(42, "0")

    def test_reset_invalidates_keys_and_never_reuses_them(self):
        store = SessionStore()
        old = store.cache_path(1, Path("/m/a"))
        store.reset(1)
        with pytest.raises(SessionExpired):
            store.resolve(1, old)
        assert store.cache_path(1, Path("/m/a")) != old

    def test_cache_bounded(self):
        store = SessionStore(cache_size=3)
        keys = [store.cache_path(1, Path(f"/m/{i}")) for i in range(5)]
        with pytest.raises(SessionExpired):
            store.resolve(1, keys[0])
        assert store.resolve(1, keys[-1]) == Path("/m/4")
        assert len(store.get(1).action_cache) == 3

    def test_sessions_isolated(self):
        store = SessionStore()
        key = store.cache_path(1, Path("/m/a"))
        store.get_or_create(2)
        with pytest.raises(SessionExpired):
            store.resolve(2, key)


class TestMessageHistory:
    def test_history_capped_keeps_newest(self):
        store = SessionStore(history_cap=20)
        rng = random.Random(7)
        ids = [rng.randrange(1, 10_000) for _ in range(rng.randrange(21, 200))]
        for message_id in ids:
            store.record_message(1, message_id)
        assert store.get(1).message_history == ids[-20:]

    def test_forget_deleted_message(self):
        store = SessionStore()
        store.record_message(1, 10)
        store.record_message(1, 11)
        store.forget_message(1, 10)
        store.forget_message(1, 99)
        assert store.get(1).message_history == [11]

    def test_reset_drains_history(self):
        store = SessionStore()
        store.record_message(1, 10)
        store.record_message(1, 11)
        assert store.reset(1) == [10, 11]
        assert store.get(1).message_history == []
        assert store.reset(1) == []


class TestReset:
    def test_clears_navigation(self):
        store = SessionStore()
        session = store.get_or_create(1)
        session.navigation_stack[:] = ["2023", "fall"]
        store.reset(1)
        assert session.navigation_stack == []

    def test_signals_cancel_and_replaces_event(self):
        store = SessionStore()
        event = store.get_or_create(1).cancel_event
        store.reset(1)
        assert event.is_set()
        assert not store.get(1).cancel_event.is_set()


class TestDeliveryFlag:
    def test_second_claim_refused(self):
        store = SessionStore()
        assert store.try_begin_delivery(1, now=0.0) is not None
        assert store.try_begin_delivery(1, now=1.0) is None
        assert store.delivery_active(1, now=1.0)

    def test_end_releases(self):
        store = SessionStore()
        event = store.try_begin_delivery(1, now=0.0)
        store.end_delivery(1, event)
        assert not store.delivery_active(1, now=0.0)
        assert store.try_begin_delivery(1, now=0.0) is not None

    def test_stale_flag_taken_over(self):
        store = SessionStore(delivery_timeout=10.0)
        old = store.try_begin_delivery(1, now=0.0)
        assert not store.delivery_active(1, now=11.0)
        new = store.try_begin_delivery(1, now=11.0)
        assert new is not None and new is not old
        assert old.is_set()

    def test_end_by_superseded_delivery_ignored(self):
        store = SessionStore(delivery_timeout=10.0)
        old = store.try_begin_delivery(1, now=0.0)
        store.try_begin_delivery(1, now=11.0)
        store.end_delivery(1, old)
        assert store.delivery_active(1, now=12.0)

    def test_stopping_after_reset(self):
        store = SessionStore()
        event = store.try_begin_delivery(1)
        assert not store.delivery_stopping(1)
        store.reset(1)
        assert store.delivery_stopping(1)
        store.end_delivery(1, event)
        assert not store.delivery_stopping(1)

    def test_reset_leaves_flag_to_pipeline(self):
        store = SessionStore()
        event = store.try_begin_delivery(1)
        store.reset(1)
        assert event.is_set()
        assert store.get(1).delivery_in_flight
        store.end_delivery(1, event)
        assert not store.get(1).delivery_in_flight


class TestEviction:
    def test_idle_sessions_evicted(self):
        store = SessionStore(ttl=60.0)
        store.get_or_create(1).touch(now=0.0)
        store.get_or_create(2).touch(now=100.0)
        assert store.evict_idle(now=120.0) == 1
        assert 1 not in store
        assert 2 in store

    def test_delivering_session_kept(self):
        store = SessionStore(ttl=60.0, delivery_timeout=900.0)
        store.try_begin_delivery(1, now=0.0)
        store.get(1).touch(now=0.0)
        assert store.evict_idle(now=120.0) == 0
        assert 1 in store

    def test_eviction_cancels_session(self):
        store = SessionStore(ttl=1.0)
        session = store.get_or_create(1)
        session.touch(now=0.0)
        store.evict_idle(now=10.0)
        assert session.cancel_event.is_set()

    async def test_locked_session_kept(self):
        store = SessionStore(ttl=1.0)
        store.get_or_create(1).touch(now=0.0)
        async with store.lock(1):
            assert store.evict_idle(now=10.0) == 0
        assert store.evict_idle(now=10.0) == 1

    def test_size_bound_evicts_least_recent(self):
        store = SessionStore(max_sessions=3)
        for chat_id in (1, 2, 3):
            store.get_or_create(chat_id)
        store.get(1).touch(now=store.get(3).last_active + 1)
        store.get_or_create(4)
        assert len(store) == 3
        assert 2 not in store
        assert 1 in store and 4 in store
