"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass

FIRMWARE_VERSION = "1.0.4"
DEVICE_STATUS = "ok"


@dataclass(frozen=True, slots=True)
class DeviceIdentity:
    """Static identity of a simulated device, loaded from the registry."""

    device_id: int
    serial: str
    name: str
    location: str


@dataclass(frozen=True, slots=True)
class TelemetryReading:
    """One synthetic reading produced by a device for a single tick."""

    device_id: int
    ts: str
    temperature: float
    humidity: float
    battery: float
    firmware: str = FIRMWARE_VERSION
    status: str = DEVICE_STATUS
