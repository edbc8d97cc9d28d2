from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from models.telemetry import DeviceIdentity
from registry.devices import RegistryError, load_registry, resolve_credentials, token_env_key


def _write_registry(path: Path, entries) -> Path:
    path.write_text(json.dumps(entries))
    return path


def test_load_registry_preserves_order(tmp_path) -> None:
    registry = _write_registry(
        tmp_path / "devices.json",
        [
            {"deviceId": 7, "serial": "S7", "name": "Sensor7", "location": "Lab"},
            {"deviceId": 2, "serial": "S2", "name": "Sensor2", "location": "Roof"},
        ],
    )

    identities = load_registry(registry)

    assert identities == [
        DeviceIdentity(device_id=7, serial="S7", name="Sensor7", location="Lab"),
        DeviceIdentity(device_id=2, serial="S2", name="Sensor2", location="Roof"),
    ]


def test_load_registry_missing_file(tmp_path) -> None:
    with pytest.raises(RegistryError, match="not found"):
        load_registry(tmp_path / "missing.json")


def test_load_registry_invalid_json(tmp_path) -> None:
    path = tmp_path / "devices.json"
    path.write_text("[{not json")

    with pytest.raises(RegistryError, match="not valid JSON"):
        load_registry(path)


def test_load_registry_requires_array(tmp_path) -> None:
    path = _write_registry(tmp_path / "devices.json", {"deviceId": 1})

    with pytest.raises(RegistryError, match="JSON array"):
        load_registry(path)


def test_load_registry_rejects_incomplete_entries(tmp_path) -> None:
    path = _write_registry(tmp_path / "devices.json", [{"deviceId": 1, "serial": "S1"}])

    with pytest.raises(RegistryError, match="invalid entries"):
        load_registry(path)


def test_load_registry_rejects_duplicate_ids(tmp_path) -> None:
    entry = {"deviceId": 1, "serial": "S1", "name": "One", "location": "Lab"}
    path = _write_registry(tmp_path / "devices.json", [entry, entry])

    with pytest.raises(RegistryError, match="more than once"):
        load_registry(path)


def test_resolve_credentials_skips_missing_tokens(caplog) -> None:
    identities = [
        DeviceIdentity(device_id=1, serial="S1", name="One", location="Lab"),
        DeviceIdentity(device_id=2, serial="S2", name="Two", location="Lab"),
        DeviceIdentity(device_id=3, serial="S3", name="Three", location="Lab"),
    ]
    environ = {"TOKEN_DEVICE_1": "tok-1", "TOKEN_DEVICE_3": "   "}

    with caplog.at_level(logging.WARNING, logger="registry.devices"):
        credentials = resolve_credentials(identities, environ)

    assert credentials == {1: "tok-1"}
    warned = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert [record.device_id for record in warned] == [2, 3]
    assert warned[0].expected_key == "TOKEN_DEVICE_2"


def test_resolve_credentials_reads_process_environment(monkeypatch) -> None:
    monkeypatch.setenv("TOKEN_DEVICE_11", "secret")
    identity = DeviceIdentity(device_id=11, serial="S11", name="Eleven", location="Yard")

    assert resolve_credentials([identity]) == {11: "secret"}


def test_token_env_key() -> None:
    assert token_env_key(7) == "TOKEN_DEVICE_7"


def test_load_registry_rejects_negative_ids(tmp_path) -> None:
    path = _write_registry(
        tmp_path / "devices.json",
        [{"deviceId": -3, "serial": "S-3", "name": "Negative", "location": "Lab"}],
    )

    with pytest.raises(RegistryError, match="invalid entries"):
        load_registry(path)
