"""
Tests for the RefreshEngine state machine.
"""

import threading
from datetime import timedelta
from unittest.mock import Mock

import pytest

from statly.entitlements import EntitlementService, StaticEntitlementOracle, Tier
from statly.store import Configuration, RefreshInterval
from statly.timeline import (
    ConfigurationError,
    ConfigurationOk,
    ConfigurationStale,
    NoConfigurationSelected,
    NoConfigurationsExist,
    RefreshEngine,
    RefreshPolicy,
)
from statly.utils.errors import DecodeError, ServerError, STALE_DATA_SERVED, TransportError


class TestEmptyAndUnselected:
    """Ticks that never reach the network"""

    def test_empty_store_backs_off_one_hour(self, engine, clock, fake_client):
        """Empty store yields NoConfigurationsExist and a one hour delay"""
        entry = engine.tick(None)

        assert isinstance(entry.state, NoConfigurationsExist)
        assert entry.date == clock.now
        assert entry.next_refresh_at == clock.now + timedelta(hours=1)
        assert fake_client.calls == []

    def test_empty_store_wins_over_selected_id(self, engine):
        """A stale selection on an empty store still reports no configurations"""
        entry = engine.tick("gone")
        assert isinstance(entry.state, NoConfigurationsExist)

    def test_no_selection(self, engine, store, sample_configuration, clock):
        """No configuration chosen yields NoConfigurationSelected"""
        store.save(sample_configuration)

        entry = engine.tick(None)

        assert isinstance(entry.state, NoConfigurationSelected)
        assert entry.state.message == "Select a widget"
        assert entry.next_refresh_at == clock.now + timedelta(minutes=5)

    def test_deleted_selection(self, engine, store, sample_configuration):
        """A selection pointing at a deleted configuration is unselected"""
        store.save(sample_configuration)
        other = store.save(Configuration(name="Other"))
        store.delete(other.id)

        entry = engine.tick(other.id)

        assert isinstance(entry.state, NoConfigurationSelected)


class TestFetchOutcomes:
    """Ticks that fetch stats"""

    def test_success_schedules_configured_interval(
        self, engine, store, fake_client, sample_configuration, users_snapshot, clock
    ):
        """Successful fetch yields ConfigurationOk and now + interval"""
        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, users_snapshot)

        entry = engine.tick(sample_configuration.id)

        assert isinstance(entry.state, ConfigurationOk)
        assert entry.state.using_cache is False
        assert entry.state.snapshot.stats[0].label == "USERS"
        assert entry.state.snapshot.stats[0].value == "1,234"
        assert entry.next_refresh_at == clock.now + timedelta(minutes=15)
        assert fake_client.calls == [(sample_configuration.endpoint_url, sample_configuration.secret_key)]

    def test_success_writes_cache_unchanged(
        self, engine, store, cache, fake_client, sample_configuration, sample_snapshot
    ):
        """The cached snapshot equals the fetched one"""
        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, sample_snapshot)

        engine.tick(sample_configuration.id)

        assert cache.get(sample_configuration.id) == sample_snapshot

    def test_failure_without_cache_is_error(self, engine, store, fake_client, sample_configuration, clock):
        """No prior cache entry and a failing fetch yields ConfigurationError"""
        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, ServerError(500))

        entry = engine.tick(sample_configuration.id)

        assert isinstance(entry.state, ConfigurationError)
        assert not isinstance(entry.state, ConfigurationStale)
        assert entry.state.config.id == sample_configuration.id
        assert entry.state.message == "Server error: 500"
        assert entry.next_refresh_at == clock.now + timedelta(minutes=5)

    def test_failure_with_cache_is_stale(
        self, engine, store, fake_client, sample_configuration, users_snapshot, clock
    ):
        """First tick succeeds, second fails: the first snapshot is served stale"""
        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, users_snapshot)
        engine.tick(sample_configuration.id)

        clock.advance(minutes=15)
        fake_client.respond(sample_configuration.endpoint_url, ServerError(500))
        entry = engine.tick(sample_configuration.id)

        assert isinstance(entry.state, ConfigurationStale)
        assert entry.state.snapshot == users_snapshot
        assert entry.state.message == "Server error: 500"
        assert entry.state.annotation == STALE_DATA_SERVED
        assert entry.next_refresh_at == clock.now + timedelta(minutes=5)

    def test_failure_does_not_touch_cache(
        self, engine, store, cache, fake_client, sample_configuration, users_snapshot
    ):
        store.save(sample_configuration)
        cache.put(sample_configuration.id, users_snapshot)
        fake_client.respond(sample_configuration.endpoint_url, DecodeError("bad json"))

        engine.tick(sample_configuration.id)

        assert cache.get(sample_configuration.id) == users_snapshot

    def test_recovers_after_failure(
        self, engine, store, fake_client, sample_configuration, users_snapshot
    ):
        """No state is terminal: a later success yields Ok again"""
        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, TransportError("timed out"))
        assert isinstance(engine.tick(sample_configuration.id).state, ConfigurationError)

        fake_client.respond(sample_configuration.endpoint_url, users_snapshot)
        assert isinstance(engine.tick(sample_configuration.id).state, ConfigurationOk)

    def test_unexpected_client_exception_is_contained(self, store, sample_configuration, pro_entitlements, clock):
        """Exceptions outside the client taxonomy still produce an entry"""
        client = Mock()
        client.fetch.side_effect = RuntimeError("boom")
        engine = RefreshEngine(store, client, pro_entitlements, clock=clock)
        store.save(sample_configuration)

        entry = engine.tick(sample_configuration.id)

        assert isinstance(entry.state, ConfigurationError)
        assert "boom" in entry.state.message
        assert entry.next_refresh_at == clock.now + timedelta(minutes=5)

    def test_store_failure_is_contained(self, fake_client, pro_entitlements, clock):
        """A broken store yields an error entry instead of raising"""
        store = Mock()
        store.load_all.side_effect = OSError("disk gone")
        engine = RefreshEngine(store, fake_client, pro_entitlements, cache=Mock(), clock=clock)

        entry = engine.tick("abc")

        assert isinstance(entry.state, ConfigurationError)
        assert entry.state.config is None
        assert "disk gone" in entry.state.message


class TestIntervalClamp:
    """Tier clamping of the scheduling interval"""

    def test_basic_tier_uses_floor_but_keeps_record(
        self, store, fake_client, basic_entitlements, sample_configuration, users_snapshot, clock
    ):
        """A 15 minute interval stored under pro schedules at 2 hours on basic"""
        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, users_snapshot)
        engine = RefreshEngine(store, fake_client, basic_entitlements, clock=clock)

        entry = engine.tick(sample_configuration.id)

        assert entry.next_refresh_at == clock.now + timedelta(hours=2)
        stored = store.load_by_id(sample_configuration.id)
        assert stored.refresh_interval == RefreshInterval.FIFTEEN_MINUTES

    def test_unknown_tier_is_resolved_before_clamping(
        self, store, fake_client, sample_configuration, users_snapshot, clock
    ):
        """An unresolved tier triggers an oracle check"""
        oracle = StaticEntitlementOracle(Tier.PRO)
        service = EntitlementService(oracle)
        assert service.tier is Tier.UNKNOWN

        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, users_snapshot)
        engine = RefreshEngine(store, fake_client, service, clock=clock)

        entry = engine.tick(sample_configuration.id)

        assert service.tier is Tier.PRO
        assert entry.next_refresh_at == clock.now + timedelta(minutes=15)

    def test_unreachable_oracle_gets_basic_limits(
        self, store, fake_client, sample_configuration, users_snapshot, clock
    ):
        oracle = Mock()
        oracle.name = "broken"
        oracle.check.side_effect = ConnectionError("store offline")
        service = EntitlementService(oracle)

        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, users_snapshot)
        engine = RefreshEngine(store, fake_client, service, clock=clock)

        entry = engine.tick(sample_configuration.id)

        assert service.tier is Tier.UNKNOWN
        assert entry.next_refresh_at == clock.now + timedelta(hours=2)

    def test_custom_policy(self, store, fake_client, pro_entitlements, clock):
        policy = RefreshPolicy(empty_backoff=timedelta(minutes=30))
        engine = RefreshEngine(store, fake_client, pro_entitlements, policy=policy, clock=clock)

        assert engine.tick(None).next_refresh_at == clock.now + timedelta(minutes=30)


class _JoinSpy(dict):
    """In-flight table that records when a tick finds a pending fetch"""

    def __init__(self):
        super().__init__()
        self.joined = threading.Event()

    def get(self, key, default=None):
        value = super().get(key, default)
        if value is not None:
            self.joined.set()
        return value


class TestConcurrency:
    """Single-flight ticks and deletes racing fetches"""

    def test_concurrent_ticks_share_one_fetch(
        self, store, sample_configuration, users_snapshot, pro_entitlements, clock
    ):
        """A second tick for the same id waits for the in-flight fetch"""
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_fetch(url, key, timeout=None):
            calls.append(url)
            started.set()
            release.wait(timeout=5)
            return users_snapshot

        client = Mock()
        client.fetch.side_effect = slow_fetch
        store.save(sample_configuration)
        engine = RefreshEngine(store, client, pro_entitlements, clock=clock)
        engine._inflight = _JoinSpy()

        results = []
        first = threading.Thread(target=lambda: results.append(engine.tick(sample_configuration.id)))
        first.start()
        assert started.wait(timeout=5)
        assert engine.is_fetching(sample_configuration.id)

        second = threading.Thread(target=lambda: results.append(engine.tick(sample_configuration.id)))
        second.start()
        assert engine._inflight.joined.wait(timeout=5)
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert len(calls) == 1
        assert len(results) == 2
        assert results[0] is results[1]
        assert not engine.is_fetching(sample_configuration.id)

    def test_delete_during_fetch_skips_cache_write(
        self, store, cache, sample_configuration, users_snapshot, pro_entitlements, clock
    ):
        """Deleting a configuration mid-fetch leaves no cache entry behind"""

        def fetch_then_delete(url, key, timeout=None):
            store.delete(sample_configuration.id)
            return users_snapshot

        client = Mock()
        client.fetch.side_effect = fetch_then_delete
        store.save(sample_configuration)
        engine = RefreshEngine(store, client, pro_entitlements, clock=clock)

        entry = engine.tick(sample_configuration.id)

        assert isinstance(entry.state, ConfigurationOk)
        assert cache.get(sample_configuration.id) is None

    def test_cache_write_failure_still_renders(
        self, store, sample_configuration, users_snapshot, fake_client, pro_entitlements, clock
    ):
        store.save(sample_configuration)
        fake_client.respond(sample_configuration.endpoint_url, users_snapshot)
        broken_cache = Mock()
        broken_cache.put.side_effect = OSError("read-only")
        engine = RefreshEngine(store, fake_client, pro_entitlements, cache=broken_cache, clock=clock)

        entry = engine.tick(sample_configuration.id)

        assert isinstance(entry.state, ConfigurationOk)


@pytest.mark.parametrize(
    "error, message",
    [
        (ServerError(404), "Server error: 404"),
        (DecodeError("Expecting value"), "Invalid data format from endpoint"),
        (TransportError("connection refused"), "Network error: connection refused"),
    ],
)
def test_error_messages_reach_render_state(engine, store, fake_client, sample_configuration, error, message):
    store.save(sample_configuration)
    fake_client.respond(sample_configuration.endpoint_url, error)

    entry = engine.tick(sample_configuration.id)

    assert entry.state.message == message
