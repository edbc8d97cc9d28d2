"""Per-device delivery of telemetry readings to the collector."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Optional

import httpx

from app.schemas import TelemetryPayload
from models.telemetry import DeviceIdentity
from services.generator import SignalGenerator

logger = logging.getLogger(__name__)

TOKEN_HEADER = "x-device-token"


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """Result of one delivery attempt, reported but never raised."""

    device_id: int
    delivered: bool
    status_code: Optional[int] = None
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DeliveryStats:
    sent: int
    failed: int


class DeviceAgent:
    """Binds a device identity, its token and its signal generator."""

    def __init__(
        self,
        identity: DeviceIdentity,
        token: str,
        client: httpx.Client,
        target_url: str,
        generator: Optional[SignalGenerator] = None,
    ) -> None:
        self.identity = identity
        self._token = token
        self._client = client
        self.target_url = target_url
        self.generator = generator or SignalGenerator(identity.device_id)
        self._lock = Lock()
        self._sent = 0
        self._failed = 0

    @property
    def device_id(self) -> int:
        return self.identity.device_id

    def stats(self) -> DeliveryStats:
        with self._lock:
            return DeliveryStats(sent=self._sent, failed=self._failed)

    def push_once(self) -> DeliveryOutcome:
        """Generate one reading and POST it; failures are logged, never raised."""
        # Overlapping ticks may reach the same device; generation stays sequential.
        with self._lock:
            reading = self.generator.generate()
        body = TelemetryPayload.from_reading(reading).to_wire()
        headers = {
            "Content-Type": "application/json",
            TOKEN_HEADER: self._token,
        }

        try:
            response = self._client.post(self.target_url, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            return self._record_failure(f"collector returned {status_code}", status_code)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return self._record_failure(str(exc) or type(exc).__name__, None)
        except RuntimeError as exc:
            # The shared client is closed on shutdown while workers may still run.
            if not self._client.is_closed:
                raise
            return self._record_failure(f"client closed: {exc}", None)

        with self._lock:
            self._sent += 1
        logger.info(
            "[%s @ %s]=%s Sent: T:%s H:%s B:%s at:%s",
            self.identity.name,
            self.identity.location,
            reading.device_id,
            reading.temperature,
            reading.humidity,
            reading.battery,
            reading.ts,
        )
        return DeliveryOutcome(
            device_id=self.device_id,
            delivered=True,
            status_code=response.status_code,
        )

    def _record_failure(self, reason: str, status_code: Optional[int]) -> DeliveryOutcome:
        with self._lock:
            self._failed += 1
        logger.error(
            "[%s]=%s Error: %s",
            self.identity.name,
            self.device_id,
            reason,
            extra={"device_id": self.device_id, "status_code": status_code},
        )
        return DeliveryOutcome(
            device_id=self.device_id,
            delivered=False,
            status_code=status_code,
            reason=reason,
        )
