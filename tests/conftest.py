"""
Pytest configuration and fixtures
"""

from datetime import datetime, timedelta, timezone

import pytest
import yaml

from statly.entitlements import EntitlementService, StaticEntitlementOracle, Tier
from statly.stats import Stat, StatSnapshot, TrendDirection
from statly.store import Configuration, ConfigurationStore, MemoryStore, RefreshInterval, StatsCache
from statly.timeline import RefreshEngine
from statly.utils.errors import TransportError


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 24, 10, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeStatsClient:
    """Stats client answering from a script keyed by endpoint URL"""

    def __init__(self):
        self.responses = {}
        self.calls = []

    def respond(self, url, result):
        """Script a snapshot or an exception instance for url"""
        self.responses[url] = result

    def fetch(self, endpoint_url, secret_key, timeout=None):
        self.calls.append((endpoint_url, secret_key))
        result = self.responses.get(endpoint_url)
        if result is None:
            raise TransportError("no scripted response")
        if isinstance(result, Exception):
            raise result
        return result

    def test_connection(self, endpoint_url, secret_key):
        return self.fetch(endpoint_url, secret_key)


@pytest.fixture
def clock():
    """Fake clock starting at 2026-01-24 10:00 UTC"""
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeStatsClient()


@pytest.fixture
def backend():
    return MemoryStore()


@pytest.fixture
def store(backend):
    """Configuration store over an in-memory backend"""
    return ConfigurationStore(backend)


@pytest.fixture
def cache(store):
    return store.cache


@pytest.fixture
def pro_oracle():
    return StaticEntitlementOracle(Tier.PRO)


@pytest.fixture
def pro_entitlements(pro_oracle):
    service = EntitlementService(pro_oracle)
    service.refresh()
    return service


@pytest.fixture
def basic_entitlements():
    service = EntitlementService(StaticEntitlementOracle(Tier.BASIC))
    service.refresh()
    return service


@pytest.fixture
def engine(store, fake_client, pro_entitlements, clock):
    """Refresh engine on a pro tier with a fake client and clock"""
    return RefreshEngine(store, fake_client, pro_entitlements, clock=clock)


@pytest.fixture
def users_snapshot():
    """Single-stat snapshot as served by a minimal endpoint"""
    return StatSnapshot(stats=(Stat("USERS", "1,234"),))


@pytest.fixture
def sample_snapshot():
    """Snapshot with several stats, trends and a timestamp"""
    return StatSnapshot(
        stats=(
            Stat("USERS", "1,234", "+12%", TrendDirection.UP),
            Stat("REVENUE", "$5,678", "-3%", TrendDirection.DOWN),
            Stat("CHURN", "2.1%"),
            Stat("MRR", "$9,000", "0%", TrendDirection.NEUTRAL),
        ),
        updated_at="2026-01-24T09:30:00Z",
    )


@pytest.fixture
def sample_configuration():
    """Configuration pointing at a fake endpoint"""
    return Configuration(
        name="Shop",
        endpoint_url="https://stats.example.com/api",
        secret_key="sk_test_123",
        refresh_interval=RefreshInterval.FIFTEEN_MINUTES,
    )


@pytest.fixture
def sample_settings(tmp_path):
    """Settings mapping with a file store inside tmp_path"""
    return {
        "store": {"path": str(tmp_path / "store")},
        "client": {"timeout": 5, "auth_style": "bearer"},
        "entitlement": {"tier": "pro"},
        "policy": {"empty_backoff": 3600, "unselected_backoff": 300, "failure_backoff": 300},
        "widgets": [{"name": "home", "configuration": None, "family": "medium"}],
    }


@pytest.fixture
def settings_file(tmp_path, sample_settings):
    """Write sample_settings to a temporary YAML file"""
    path = tmp_path / "statly.yaml"
    with open(path, "w") as f:
        yaml.dump(sample_settings, f)
    return path


@pytest.fixture
def png_bytes():
    """A 512x256 PNG logo"""
    import io

    from PIL import Image

    img = Image.new("RGB", (512, 256), color="red")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
