from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from settings import get_settings


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.health_payload: Dict[str, Any] = {"status": "running", "activeDevices": 2}
        self.devices_payload: Dict[str, Any] = {
            "devices": [
                {"deviceId": 1, "serial": "S1", "name": "One", "location": "Lab", "sent": 4, "failed": 1},
                {"deviceId": 3, "serial": "S3", "name": "Three", "location": "Roof", "sent": 5, "failed": 0},
            ]
        }
        self.closed = False

    def get_health(self) -> Dict[str, Any]:
        return self.health_payload

    def get_devices(self) -> Dict[str, Any]:
        return self.devices_payload

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch) -> List[Any]:
    calls: List[Any] = []
    monkeypatch.setattr("cli.app.configure_logging", lambda *args: calls.append(args))
    return calls


@pytest.fixture()
def registry_env(monkeypatch, tmp_path):
    registry = tmp_path / "devices.json"
    registry.write_text(
        json.dumps(
            [
                {"deviceId": 1, "serial": "S1", "name": "One", "location": "Lab"},
                {"deviceId": 2, "serial": "S2", "name": "Two", "location": "Roof"},
            ]
        )
    )
    monkeypatch.setenv("DEVICE_REGISTRY_PATH", str(registry))
    monkeypatch.setenv("TOKEN_DEVICE_1", "tok-1")
    monkeypatch.delenv("TOKEN_DEVICE_2", raising=False)
    get_settings.cache_clear()
    yield registry
    get_settings.cache_clear()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_status_renders_health_and_counters(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["--base-url", "http://sim.test:4000/", "status"])

    assert result.exit_code == 0
    assert "activeDevices: 2" in result.stdout
    assert "sent=4 failed=1" in result.stdout
    assert stub.config.base_url == "http://sim.test:4000"
    assert stub.closed is True


def test_devices_marks_missing_tokens(monkeypatch, runner: CliRunner, registry_env) -> None:
    _install_stub(monkeypatch, StubClient(config=None))

    result = runner.invoke(app, ["devices"])

    assert result.exit_code == 0
    assert "1 S1 One @ Lab: active" in result.stdout
    assert "2 S2 Two @ Roof: missing token" in result.stdout


def test_devices_fails_on_missing_registry(monkeypatch, runner: CliRunner, tmp_path) -> None:
    _install_stub(monkeypatch, StubClient(config=None))
    monkeypatch.setenv("DEVICE_REGISTRY_PATH", str(tmp_path / "nope.json"))
    get_settings.cache_clear()

    try:
        result = runner.invoke(app, ["devices"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 1
    assert "not found" in result.output


def test_preview_prints_wire_payloads(monkeypatch, runner: CliRunner) -> None:
    _install_stub(monkeypatch, StubClient(config=None))

    result = runner.invoke(app, ["preview", "7", "--count", "3"])

    assert result.exit_code == 0
    lines = [line for line in result.stdout.splitlines() if line.strip()]
    assert len(lines) == 3
    payloads = [json.loads(line) for line in lines]
    assert all(payload["deviceId"] == 7 for payload in payloads)
    assert all(payload["payload"] == {"firmware": "1.0.4", "status": "ok"} for payload in payloads)


def test_run_starts_server_on_configured_port(monkeypatch, runner: CliRunner, registry_env) -> None:
    _install_stub(monkeypatch, StubClient(config=None))
    calls: List[Dict[str, Any]] = []

    def fake_run(target, **kwargs) -> None:
        calls.append({"target": target, **kwargs})

    monkeypatch.setattr("cli.app.uvicorn.run", fake_run)
    monkeypatch.setenv("PORT", "4555")
    get_settings.cache_clear()

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 0
    assert "Loading 2 devices from registry..." in result.stdout
    assert calls == [
        {
            "target": "app.main:create_app",
            "factory": True,
            "host": "0.0.0.0",
            "port": 4555,
            "log_config": None,
        }
    ]


def test_run_refuses_to_start_without_registry(monkeypatch, runner: CliRunner, tmp_path) -> None:
    _install_stub(monkeypatch, StubClient(config=None))
    calls: List[Any] = []
    monkeypatch.setattr("cli.app.uvicorn.run", lambda *args, **kwargs: calls.append(args))
    monkeypatch.setenv("DEVICE_REGISTRY_PATH", str(tmp_path / "nope.json"))
    get_settings.cache_clear()

    try:
        result = runner.invoke(app, ["run"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 1
    assert calls == []


def test_commands_configure_logging(monkeypatch, runner: CliRunner, registry_env, logging_calls) -> None:
    _install_stub(monkeypatch, StubClient(config=None))

    result = runner.invoke(app, ["devices"])

    assert result.exit_code == 0
    assert logging_calls == [()]
