"""Tests for the bot service app."""
import pytest
from fastapi.testclient import TestClient

import services.bot.app.main as main_mod


@pytest.fixture
def client():
    return TestClient(main_mod.app)


def test_liveness(client):
    assert client.get("/bot/health/live").json() == {"status": "alive", "service": "bot"}


def test_readiness_uses_critical_checks(client, monkeypatch):
    monkeypatch.setattr(
        main_mod.health_checker,
        "run_all_checks",
        lambda: {
            "service": "bot",
            "status": "unhealthy",
            "checks": [
                {"name": "database", "status": "healthy"},
                {"name": "telegram", "status": "unhealthy"},
            ],
        },
    )

    body = client.get("/bot/health/ready").json()

    assert body["status"] == "ready"
    assert body["critical_dependencies"] == {"database": "healthy"}


def test_metrics(client):
    response = client.get("/bot/metrics")
    assert response.status_code == 200
    assert "linkshelf_rate_limited_total" in response.text


def test_missing_token_is_fatal(monkeypatch):
    monkeypatch.setattr(main_mod.settings.telegram, "token", None)
    init_called = []
    monkeypatch.setattr(main_mod, "init_db", lambda: init_called.append(True))

    with pytest.raises(RuntimeError, match="TELEGRAM_TOKEN"):
        with TestClient(main_mod.app):
            pass

    assert init_called == []
