"""Pydantic schemas for the wire payload and the HTTP API layer."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from models.telemetry import DeviceIdentity, TelemetryReading


class DeviceMetadata(BaseModel):
    """Fixed metadata block attached to every reading."""

    firmware: str
    status: str


class TelemetryPayload(BaseModel):
    """JSON body POSTed to the collector for each reading."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    device_id: int = Field(..., alias="deviceId")
    ts: str
    temperature: float
    humidity: float
    battery: float
    payload: DeviceMetadata

    @classmethod
    def from_reading(cls, reading: TelemetryReading) -> "TelemetryPayload":
        return cls(
            device_id=reading.device_id,
            ts=reading.ts,
            temperature=reading.temperature,
            humidity=reading.humidity,
            battery=reading.battery,
            payload=DeviceMetadata(firmware=reading.firmware, status=reading.status),
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class RegistryEntry(BaseModel):
    """One device entry from the registry file."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    device_id: int = Field(..., alias="deviceId", ge=0)
    serial: str
    name: str
    location: str

    def to_identity(self) -> DeviceIdentity:
        return DeviceIdentity(
            device_id=self.device_id,
            serial=self.serial,
            name=self.name,
            location=self.location,
        )


class HealthStatus(BaseModel):
    """Liveness answer for external health probes."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = "running"
    active_devices: int = Field(..., alias="activeDevices", ge=0)


class DeviceSummary(BaseModel):
    """Read-only view of one active device and its delivery counters."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: int = Field(..., alias="deviceId")
    serial: str
    name: str
    location: str
    sent: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)


class DeviceListResponse(BaseModel):
    """Response body for the device listing endpoint."""

    devices: List[DeviceSummary] = Field(default_factory=list)
