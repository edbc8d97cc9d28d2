"""Device registry loading and per-device credential resolution."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from app.schemas import RegistryEntry
from models.telemetry import DeviceIdentity
from settings import get_settings

logger = logging.getLogger(__name__)

TOKEN_ENV_PREFIX = "TOKEN_DEVICE_"

_entries_adapter = TypeAdapter(List[RegistryEntry])


class RegistryError(RuntimeError):
    """Raised when the device registry cannot be loaded."""


def token_env_key(device_id: int) -> str:
    return f"{TOKEN_ENV_PREFIX}{device_id}"


def load_registry(path: Path) -> list[DeviceIdentity]:
    """Read and validate the registry file, preserving its order."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RegistryError(f"Device registry {str(path)!r} not found.") from exc
    except OSError as exc:
        raise RegistryError(f"Device registry {str(path)!r} is unreadable: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RegistryError(f"Device registry {str(path)!r} is not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise RegistryError(f"Device registry {str(path)!r} must contain a JSON array.")

    try:
        entries = _entries_adapter.validate_python(data)
    except ValidationError as exc:
        raise RegistryError(
            f"Device registry {str(path)!r} has invalid entries: {exc.error_count()} error(s)"
        ) from exc

    seen: set[int] = set()
    identities: list[DeviceIdentity] = []
    for entry in entries:
        if entry.device_id in seen:
            raise RegistryError(
                f"Device registry {str(path)!r} lists device {entry.device_id} more than once."
            )
        seen.add(entry.device_id)
        identities.append(entry.to_identity())

    logger.info("Loaded %d devices from registry %s", len(identities), path)
    return identities


def resolve_credentials(
    identities: Iterable[DeviceIdentity],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[int, str]:
    """Build the ``device_id -> token`` mapping once, warning on each miss."""
    env = os.environ if environ is None else environ
    credentials: Dict[int, str] = {}
    for identity in identities:
        key = token_env_key(identity.device_id)
        token = (env.get(key) or "").strip()
        if not token:
            logger.warning(
                "No token found for device %s; skipping",
                identity.device_id,
                extra={"device_id": identity.device_id, "expected_key": key},
            )
            continue
        credentials[identity.device_id] = token
    return credentials


def load_default_registry(path: Optional[str] = None) -> list[DeviceIdentity]:
    settings = get_settings()
    registry_path = settings.registry_path if path is None else path
    return load_registry(Path(registry_path))
