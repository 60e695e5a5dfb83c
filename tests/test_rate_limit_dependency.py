"""Integration tests for the FastAPI rate limiting dependency."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Generator
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rate_bastion.adapters.rate_limit.token_bucket import TokenBucketRateLimiter
from rate_bastion.adapters.store.in_memory import InMemoryKeyValueStore
from rate_bastion.core import rate_limit as rate_limit_module
from rate_bastion.core.app_factory import create_app
from rate_bastion.core.config import settings
from rate_bastion.core.errors import KeyNotFoundError
from rate_bastion.core.rate_limit import get_rate_limiter
from rate_bastion.schemas.bucket import BucketState

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class UnavailableStore(InMemoryKeyValueStore):
    """Store whose reads fail like an unreachable cache."""

    def get(self, key: str) -> str:
        raise ConnectionError("cache unreachable")


class ReadOnlyStore(InMemoryKeyValueStore):
    """Store that serves reads but rejects every write."""

    def get(self, key: str) -> str:
        raise KeyNotFoundError(key)

    def set(self, key: str, value: str) -> None:
        raise ConnectionError("cache is read-only")


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=NOW)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def app() -> FastAPI:
    return create_app()


def _install(app: FastAPI, limiter: TokenBucketRateLimiter) -> None:
    app.dependency_overrides[get_rate_limiter] = lambda: limiter


@pytest.fixture
def client(app: FastAPI, store: InMemoryKeyValueStore, clock: Mock) -> Generator[TestClient, None, None]:
    limiter = TokenBucketRateLimiter(
        capacity=2, refill_interval_seconds=30, store=store, clock=clock
    )
    _install(app, limiter)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_allows_until_bucket_is_empty(client: TestClient) -> None:
    assert client.get("/v1/ping").status_code == 200
    assert client.get("/v1/ping").status_code == 200

    resp = client.get("/v1/ping")

    assert resp.status_code == 429
    assert resp.json()["detail"] == "Rate limit exceeded. Try again later."


def test_throttled_response_includes_headers(client: TestClient) -> None:
    client.get("/v1/ping")
    client.get("/v1/ping")

    resp = client.get("/v1/ping")

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "30"
    assert resp.headers["X-RateLimit-Limit"] == "2"
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.headers["X-RateLimit-Reset"] == str(int((NOW + timedelta(seconds=30)).timestamp()))


def test_headers_can_be_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.limiter, "include_headers", False)
    client.get("/v1/ping")
    client.get("/v1/ping")

    resp = client.get("/v1/ping")

    assert resp.status_code == 429
    assert "Retry-After" not in resp.headers


def test_bucket_refills_after_interval(client: TestClient, clock: Mock) -> None:
    client.get("/v1/ping")
    client.get("/v1/ping")
    assert client.get("/v1/ping").status_code == 429

    clock.return_value = NOW + timedelta(seconds=30)

    assert client.get("/v1/ping").status_code == 200


def test_buckets_are_keyed_by_api_key(client: TestClient, store: InMemoryKeyValueStore) -> None:
    client.get("/v1/ping", headers={"X-API-Key": "alpha"})
    client.get("/v1/ping", headers={"X-API-Key": "alpha"})

    assert client.get("/v1/ping", headers={"X-API-Key": "alpha"}).status_code == 429
    assert client.get("/v1/ping", headers={"X-API-Key": "beta"}).status_code == 200

    state = BucketState.from_json(store.get("ratelimit:api_key:beta"))
    assert state.tokens_in_bucket == 1


def test_falls_back_to_client_ip(client: TestClient, store: InMemoryKeyValueStore) -> None:
    client.get("/v1/ping")

    state = BucketState.from_json(store.get("ratelimit:ip:testclient"))
    assert state.tokens_in_bucket == 1


def test_health_is_not_rate_limited(client: TestClient) -> None:
    for _ in range(5):
        assert client.get("/health").status_code == 200


def test_disabled_limiter_skips_store(client: TestClient, store: InMemoryKeyValueStore, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.limiter, "enabled", False)

    for _ in range(5):
        assert client.get("/v1/ping").status_code == 200

    with pytest.raises(KeyNotFoundError):
        store.get("ratelimit:ip:testclient")


def test_store_read_failure_returns_503(app: FastAPI, clock: Mock) -> None:
    _install(
        app,
        TokenBucketRateLimiter(
            capacity=5, refill_interval_seconds=30, store=UnavailableStore(), clock=clock
        ),
    )
    client = TestClient(app)

    resp = client.get("/v1/ping", headers={"X-Request-ID": "req-503"})

    assert resp.status_code == 503
    error = resp.json()["error"]
    assert error["code"] == "store_read_failed"
    assert error["request_id"] == "req-503"
    app.dependency_overrides.clear()


def test_store_write_failure_returns_503(app: FastAPI, clock: Mock) -> None:
    _install(
        app,
        TokenBucketRateLimiter(
            capacity=5, refill_interval_seconds=30, store=ReadOnlyStore(), clock=clock
        ),
    )
    client = TestClient(app)

    resp = client.get("/v1/ping")

    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "store_write_failed"
    app.dependency_overrides.clear()


def test_missing_redis_url_is_a_server_error(app: FastAPI, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(rate_limit_module, "_limiter", None)
    monkeypatch.setattr(rate_limit_module, "_limiter_config", None)
    monkeypatch.setattr(settings.store, "backend", "redis")
    monkeypatch.setattr(settings.store, "redis_url", None)

    resp = TestClient(app).get("/v1/ping")

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "store_missing_redis_url"


class TestGetRateLimiter:
    @pytest.fixture(autouse=True)
    def _reset_cached_limiter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(rate_limit_module, "_limiter", None)
        monkeypatch.setattr(rate_limit_module, "_limiter_config", None)
        monkeypatch.setattr(settings.store, "backend", "memory")

    def test_builds_limiter_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.limiter, "capacity", 3)
        monkeypatch.setattr(settings.limiter, "refill_interval_seconds", 15.0)

        limiter = get_rate_limiter()

        assert isinstance(limiter, TokenBucketRateLimiter)
        assert limiter.capacity == 3
        assert limiter.refill_interval_seconds == 15.0

    def test_reuses_instance_until_config_changes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_rate_limiter()
        assert get_rate_limiter() is first

        monkeypatch.setattr(settings.limiter, "capacity", settings.limiter.capacity + 1)

        assert get_rate_limiter() is not first

    def test_rebuild_closes_previous_store(self, monkeypatch: pytest.MonkeyPatch) -> None:
        stores: list[Mock] = []

        def _fake_create_store(cfg):
            store = Mock(spec=InMemoryKeyValueStore)
            stores.append(store)
            return store

        monkeypatch.setattr(rate_limit_module, "create_store", _fake_create_store)

        get_rate_limiter()
        monkeypatch.setattr(settings.limiter, "capacity", settings.limiter.capacity + 1)
        get_rate_limiter()

        assert len(stores) == 2
        stores[0].close.assert_called_once_with()
        stores[1].close.assert_not_called()

    def test_timeout_change_rebuilds_limiter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_rate_limiter()

        monkeypatch.setattr(settings.store, "socket_timeout_seconds", 9.0)

        assert get_rate_limiter() is not first
