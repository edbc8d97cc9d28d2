"""Fleet ownership and periodic fan-out of delivery attempts."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache
from threading import Event, Lock, Thread
from typing import Dict, Iterable, Mapping, Optional, Sequence

import httpx

from app.schemas import DeviceSummary, HealthStatus
from models.telemetry import DeviceIdentity
from registry.devices import load_default_registry, resolve_credentials
from services.agent import DeliveryOutcome, DeviceAgent
from settings import get_settings

logger = logging.getLogger(__name__)

MIN_WORKERS = 1


def build_fleet(
    identities: Iterable[DeviceIdentity],
    credentials: Mapping[int, str],
    client: httpx.Client,
    target_url: str,
) -> tuple[DeviceAgent, ...]:
    """Create agents in registry order for every identity that has a token."""
    agents = [
        DeviceAgent(
            identity=identity,
            token=credentials[identity.device_id],
            client=client,
            target_url=target_url,
        )
        for identity in identities
        if identity.device_id in credentials
    ]
    return tuple(agents)


def worker_count_for(fleet_size: int, requested: Optional[int] = None) -> int:
    """One worker per device at least, so a dispatch never queues behind another device."""
    return max(MIN_WORKERS, fleet_size, requested or 0)


class FleetScheduler:
    """Owns the fleet and drives one tick immediately, then every interval.

    A tick submits ``push_once`` for each agent to the executor and returns
    without joining. A device whose previous attempt is still in flight is
    skipped for that tick, so each device has at most one outstanding attempt
    and, with a worker per device, no dispatch waits for a slow sibling.

    ``stop`` is terminal: a stopped scheduler cannot be restarted.
    """

    def __init__(
        self,
        agents: Sequence[DeviceAgent],
        interval_seconds: float,
        workers: Optional[int] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("Tick interval must be positive.")
        self.agents: tuple[DeviceAgent, ...] = tuple(agents)
        self.interval_seconds = interval_seconds
        self.executor = ThreadPoolExecutor(
            max_workers=worker_count_for(len(self.agents), workers),
            thread_name_prefix="fleet-dispatch",
        )
        self._client = client
        self._stop_event = Event()
        self._state_lock = Lock()
        self._thread: Optional[Thread] = None
        self._stopped = False
        self._tick_count = 0
        self._in_flight: Dict[int, Future[DeliveryOutcome]] = {}

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    @property
    def tick_count(self) -> int:
        with self._state_lock:
            return self._tick_count

    def tick(self) -> list[Future[DeliveryOutcome]]:
        """Dispatch one delivery attempt per agent without waiting for any of them."""
        with self._state_lock:
            if self._stopped:
                return []
            self._tick_count += 1
            tick_number = self._tick_count
            futures: list[Future[DeliveryOutcome]] = []
            skipped: list[DeviceAgent] = []
            for agent in self.agents:
                previous = self._in_flight.get(agent.device_id)
                if previous is not None and not previous.done():
                    skipped.append(agent)
                    continue
                future = self.executor.submit(agent.push_once)
                self._in_flight[agent.device_id] = future
                futures.append(future)
        for agent in skipped:
            logger.warning(
                "[%s]=%s Skipped: previous delivery still in flight",
                agent.identity.name,
                agent.device_id,
                extra={"device_id": agent.device_id, "tick": tick_number},
            )
        logger.debug(
            "Dispatched tick",
            extra={"tick": tick_number, "active_devices": len(self.agents)},
        )
        return futures

    def start(self) -> None:
        with self._state_lock:
            if self._stopped:
                raise RuntimeError("Fleet scheduler has been stopped.")
            if self._thread is not None:
                return
            self._thread = Thread(target=self._run, name="fleet-scheduler", daemon=True)

        logger.info(
            "Starting simulation every %.3fs",
            self.interval_seconds,
            extra={"active_devices": len(self.agents)},
        )
        self.tick()
        self._thread.start()

    def stop(self) -> None:
        """Stop ticking and abandon in-flight deliveries."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join()
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True
        self.executor.shutdown(wait=False, cancel_futures=True)
        if self._client is not None:
            self._client.close()

    def status(self) -> HealthStatus:
        return HealthStatus(status="running", active_devices=len(self.agents))

    def device_summaries(self) -> list[DeviceSummary]:
        summaries: list[DeviceSummary] = []
        for agent in self.agents:
            stats = agent.stats()
            summaries.append(
                DeviceSummary(
                    device_id=agent.identity.device_id,
                    serial=agent.identity.serial,
                    name=agent.identity.name,
                    location=agent.identity.location,
                    sent=stats.sent,
                    failed=stats.failed,
                )
            )
        return summaries

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.tick()


@lru_cache
def build_default_scheduler() -> FleetScheduler:
    """Factory that wires the scheduler from settings, registry and environment.

    Raises ``RegistryError`` when the registry cannot be loaded.
    """
    settings = get_settings()
    identities = load_default_registry()
    credentials = resolve_credentials(identities)
    client = httpx.Client(timeout=settings.request_timeout)
    agents = build_fleet(identities, credentials, client, settings.target_api_url)
    logger.info("Successfully initialized %d devices.", len(agents))
    return FleetScheduler(
        agents=agents,
        interval_seconds=settings.tick_interval_seconds,
        workers=settings.dispatch_workers,
        client=client,
    )
