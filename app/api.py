"""HTTP route definitions for the simulator."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.schemas import DeviceListResponse, HealthStatus
from services.fleet import FleetScheduler, build_default_scheduler

router = APIRouter()


def get_scheduler() -> FleetScheduler:
    return build_default_scheduler()


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check endpoint reporting the active fleet size.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    scheduler: FleetScheduler = Depends(get_scheduler),
) -> HealthStatus:
    return scheduler.status()


@router.get(
    "/devices",
    response_model=DeviceListResponse,
    summary="List active devices with their delivery counters.",
    status_code=status.HTTP_200_OK,
)
async def list_devices(
    scheduler: FleetScheduler = Depends(get_scheduler),
) -> DeviceListResponse:
    return DeviceListResponse(devices=scheduler.device_summaries())
