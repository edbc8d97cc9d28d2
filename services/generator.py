"""Per-device synthetic signal generation."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Optional

from models.telemetry import TelemetryReading

BATTERY_DRAIN_PER_TICK = 0.35
BATTERY_FULL = 100.0
VARIANCE_LOW = 0.8
VARIANCE_SPAN = 0.4


def base_temperature_for(device_id: int) -> float:
    return float(20 + device_id % 10)


def base_humidity_for(device_id: int) -> float:
    return float(40 + device_id % 15)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Format ``now`` as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SignalGenerator:
    """Stateful random-walk source of readings for one device.

    Temperature and humidity jitter around fixed per-device bases. Battery
    drains by a fixed amount per call and wraps back to full once it reaches
    zero, so battery lifetime is counted in ticks rather than wall-clock time.

    Not thread safe; callers serialize access per device.
    """

    def __init__(self, device_id: int, rng: Optional[random.Random] = None) -> None:
        self.device_id = device_id
        self._rng = rng or random.Random()
        self.base_temperature = base_temperature_for(device_id)
        self.base_humidity = base_humidity_for(device_id)
        self.battery_level = self._rng.random() * BATTERY_FULL

    def _variance(self) -> float:
        return VARIANCE_LOW + self._rng.random() * VARIANCE_SPAN

    def generate(self) -> TelemetryReading:
        temperature = round(self.base_temperature * self._variance(), 1)
        humidity = round(self.base_humidity * self._variance(), 1)

        self.battery_level -= BATTERY_DRAIN_PER_TICK
        if self.battery_level <= 0:
            self.battery_level = BATTERY_FULL

        return TelemetryReading(
            device_id=self.device_id,
            ts=utc_timestamp(),
            temperature=temperature,
            humidity=humidity,
            battery=round(self.battery_level, 1),
        )
