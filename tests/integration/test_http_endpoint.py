"""
Integration tests against a real local HTTP endpoint.

These tests verify the full path from a configuration through the stats
client, the cache and the refresh engine, including:
- Authenticated fetches
- Server errors falling back to cached stats
- Timeouts
"""

import json
import threading
import time
from datetime import timedelta
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from statly.entitlements import EntitlementService, StaticEntitlementOracle, Tier
from statly.stats import StatsClient
from statly.store import Configuration, ConfigurationStore, FileStore, RefreshInterval
from statly.timeline import ConfigurationError, ConfigurationOk, ConfigurationStale, RefreshEngine
from statly.utils.errors import DecodeError, InvalidEndpoint, ServerError, TransportError


class StatsHandler(BaseHTTPRequestHandler):
    """Serves whatever the test put on the server object"""

    def do_GET(self):
        self.server.requests.append(self.headers)
        if self.server.delay:
            time.sleep(self.server.delay)

        body = self.server.body
        payload = body if isinstance(body, bytes) else json.dumps(body).encode()
        self.send_response(self.server.status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def server():
    """HTTP server on an ephemeral port"""
    httpd = HTTPServer(("127.0.0.1", 0), StatsHandler)
    httpd.requests = []
    httpd.status = 200
    httpd.delay = 0
    httpd.body = {"stats": [{"label": "USERS", "value": "1,234"}]}
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield httpd
    httpd.shutdown()
    httpd.server_close()
    thread.join(timeout=5)


@pytest.fixture
def url(server):
    return f"http://127.0.0.1:{server.server_address[1]}/stats"


class TestStatsClientOverHttp:
    def test_fetch(self, server, url):
        snapshot = StatsClient(timeout=5).fetch(url, "secret")

        assert snapshot.stats[0].label == "USERS"
        assert server.requests[0]["Authorization"] == "Bearer secret"

    def test_api_key_style(self, server, url):
        StatsClient(timeout=5, auth_style="api_key").fetch(url, "secret")
        assert server.requests[0]["api_key"] == "secret"

    def test_server_error(self, server, url):
        server.status = 500
        with pytest.raises(ServerError) as excinfo:
            StatsClient(timeout=5).fetch(url, "secret")
        assert excinfo.value.status_code == 500

    def test_non_200_success(self, server, url):
        server.status = 202
        with pytest.raises(ServerError):
            StatsClient(timeout=5).fetch(url, "secret")

    def test_bad_body(self, server, url):
        server.body = b"<html></html>"
        with pytest.raises(DecodeError):
            StatsClient(timeout=5).fetch(url, "secret")

    def test_oversized_integer_is_decode_error(self, server, url):
        server.body = b'{"stats": [{"label": "X", "value": ' + b"9" * 5000 + b"}]}"
        with pytest.raises(DecodeError):
            StatsClient(timeout=5).fetch(url, "secret")

    def test_non_ascii_path_is_invalid_endpoint(self, server, url):
        with pytest.raises(InvalidEndpoint):
            StatsClient(timeout=5).fetch(url + "/st\u00e4ts", "secret")
        assert server.requests == []

    def test_timeout(self, server, url):
        server.delay = 1.0
        with pytest.raises(TransportError):
            StatsClient(timeout=0.2).fetch(url, "secret")

    def test_connection_refused(self):
        # Bind then close to get a port nobody listens on
        unused = HTTPServer(("127.0.0.1", 0), StatsHandler)
        port = unused.server_address[1]
        unused.server_close()

        with pytest.raises(TransportError):
            StatsClient(timeout=2).fetch(f"http://127.0.0.1:{port}/stats", "secret")


class TestEngineOverHttp:
    """The end-to-end scenario: fresh, then stale, then recovered"""

    def test_ok_then_stale_then_ok(self, server, url, tmp_path, clock):
        store = ConfigurationStore(FileStore(tmp_path / "store"))
        config = store.save(
            Configuration(
                name="Shop", endpoint_url=url, secret_key="secret", refresh_interval=RefreshInterval.ONE_HOUR
            )
        )
        entitlements = EntitlementService(StaticEntitlementOracle(Tier.PRO))
        engine = RefreshEngine(store, StatsClient(timeout=5), entitlements, clock=clock)

        first = engine.tick(config.id)
        assert isinstance(first.state, ConfigurationOk)
        assert first.next_refresh_at == clock.now + timedelta(hours=1)

        clock.advance(hours=1)
        server.status = 500
        second = engine.tick(config.id)
        assert isinstance(second.state, ConfigurationStale)
        assert second.state.snapshot == first.state.snapshot
        assert second.next_refresh_at == clock.now + timedelta(minutes=5)

        clock.advance(minutes=5)
        server.status = 200
        server.body = {"stats": [{"label": "USERS", "value": "2,000"}]}
        third = engine.tick(config.id)
        assert isinstance(third.state, ConfigurationOk)
        assert third.state.snapshot.stats[0].value == "2,000"

    def test_error_without_cache(self, server, url, tmp_path, clock):
        server.status = 503
        store = ConfigurationStore(FileStore(tmp_path / "store"))
        config = store.save(Configuration(name="Shop", endpoint_url=url, secret_key="secret"))
        entitlements = EntitlementService(StaticEntitlementOracle(Tier.BASIC))
        engine = RefreshEngine(store, StatsClient(timeout=5), entitlements, clock=clock)

        entry = engine.tick(config.id)

        assert isinstance(entry.state, ConfigurationError)
        assert entry.state.message == "Server error: 503"

    def test_cache_survives_restart(self, server, url, tmp_path, clock):
        """A new engine over the same directory serves the cached snapshot"""
        entitlements = EntitlementService(StaticEntitlementOracle(Tier.PRO))
        store = ConfigurationStore(FileStore(tmp_path / "store"))
        config = store.save(Configuration(name="Shop", endpoint_url=url, secret_key="secret"))
        RefreshEngine(store, StatsClient(timeout=5), entitlements, clock=clock).tick(config.id)

        server.status = 500
        reopened = ConfigurationStore(FileStore(tmp_path / "store"))
        entry = RefreshEngine(reopened, StatsClient(timeout=5), entitlements, clock=clock).tick(config.id)

        assert isinstance(entry.state, ConfigurationStale)
        assert entry.state.snapshot.stats[0].value == "1,234"
