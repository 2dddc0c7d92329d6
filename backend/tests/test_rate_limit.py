"""
Login rate limiting.

The limit is read from LOGIN_RATE_LIMIT_MAX_REQUESTS /
LOGIN_RATE_LIMIT_WINDOW_SECONDS on every request; conftest resets the
limiter storage between tests.
"""

import pytest

from conftest import auth_headers, get_auth_token


def _login(client, password="wrong"):
    return client.post("/api/auth/login", json={"email": "sam@lab.local", "password": password})


@pytest.fixture
def login_limit_of_two(app, monkeypatch):
    monkeypatch.setitem(app.config, "LOGIN_RATE_LIMIT_MAX_REQUESTS", 2)


def test_login_returns_429_with_retry_after(client, staff, login_limit_of_two):
    for _ in range(2):
        assert _login(client).status_code == 401

    resp = _login(client, "Staffset@lab01")
    assert resp.status_code == 429
    assert resp.json["kind"] == "rate_limited"
    assert int(resp.headers["Retry-After"]) > 0


def test_successful_logins_count_toward_the_limit(client, staff, login_limit_of_two):
    assert _login(client, "Staffset@lab01").status_code == 200
    assert _login(client, "Staffset@lab01").status_code == 200
    assert _login(client, "Staffset@lab01").status_code == 429


def test_limit_only_applies_to_login(client, staff, login_limit_of_two):
    token = get_auth_token(client, "sam@lab.local", "Staffset@lab01")
    assert _login(client).status_code == 401
    assert _login(client).status_code == 429

    for _ in range(5):
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 200


def test_clients_are_limited_separately(client, staff, login_limit_of_two):
    for _ in range(2):
        _login(client)
    assert _login(client).status_code == 429

    resp = client.post(
        "/api/auth/login",
        json={"email": "sam@lab.local", "password": "Staffset@lab01"},
        environ_base={"REMOTE_ADDR": "10.0.0.7"},
    )
    assert resp.status_code == 200


def test_default_limit_allows_normal_use(client, staff):
    for _ in range(5):
        assert _login(client, "Staffset@lab01").status_code == 200
