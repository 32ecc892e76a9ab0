"""FastAPI application exposing camera settings and transcode presets."""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .capabilities import CapabilityFlags, CapabilityProbe
from .config import JsonConfigStore
from .notifier import ChangeNotifier, EventLogNotifier, SettingsEventLog
from .presets import ArgumentExpander, CodecKind, default_catalog
from .settings import CameraSettings, SettingsProvider
from .version import APP_VERSION

DATA_DIR = Path(os.environ.get("CAMBRIDGE_DATA_DIR", "data"))

SettingValuePayload = str | bool | int | float | list[str] | None


@dataclass(slots=True)
class CameraDevice:
    """A camera registered with the application."""

    device_id: str
    probe: CapabilityProbe
    flags: CapabilityFlags = field(default_factory=CapabilityFlags)
    provider: SettingsProvider | None = None


class SettingUpdatePayload(BaseModel):
    key: str = Field(..., min_length=1)
    value: SettingValuePayload = None


class ExpandPayload(BaseModel):
    kind: Literal["decoder", "encoder"]
    name: str
    raw_value: str | None = None


def create_app(
    data_dir: Path | str = DATA_DIR,
    *,
    devices: Mapping[str, CameraDevice] | None = None,
    notifier: ChangeNotifier | None = None,
) -> FastAPI:
    app = FastAPI(title="CamBridge", version=APP_VERSION)

    logger = logging.getLogger(__name__)

    data_dir = Path(data_dir)
    event_log = SettingsEventLog(data_dir / "settings_events.json")
    event_notifier = EventLogNotifier(event_log, forward=notifier)
    catalog = default_catalog()
    expander = ArgumentExpander(catalog)

    cameras: dict[str, CameraSettings] = {}
    write_locks: dict[str, asyncio.Lock] = {}
    for device_id, device in (devices or {}).items():
        cameras[device_id] = CameraSettings(
            device_id,
            store=JsonConfigStore.for_device(data_dir / "settings", device_id),
            probe=device.probe,
            flags=device.flags,
            notifier=event_notifier,
            catalog=catalog,
            provider=device.provider,
        )
        write_locks[device_id] = asyncio.Lock()
    logger.info("Registered %d camera(s)", len(cameras))

    def _camera(device_id: str) -> CameraSettings:
        camera = cameras.get(device_id)
        if camera is None:
            raise HTTPException(status_code=404, detail=f"Unknown device {device_id!r}")
        return camera

    app.state.cameras = cameras
    app.state.event_log = event_log

    @app.get("/api/devices")
    async def list_devices() -> dict[str, object]:
        return {"devices": sorted(cameras)}

    @app.get("/api/devices/{device_id}/settings")
    async def get_device_settings(device_id: str) -> dict[str, object]:
        camera = _camera(device_id)
        settings = await camera.get_settings()
        return {"settings": [setting.to_dict() for setting in settings]}

    @app.put("/api/devices/{device_id}/settings")
    async def put_device_setting(device_id: str, payload: SettingUpdatePayload) -> dict[str, Any]:
        camera = _camera(device_id)
        key = payload.key.strip()
        if not key:
            raise HTTPException(status_code=400, detail="Setting key must be provided")
        async with write_locks[device_id]:
            try:
                await camera.put_setting(key, payload.value)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
        if camera.delegates(key):
            return {"key": key}
        return {"key": key, "stored": camera.store.get(key)}

    @app.get("/api/presets")
    async def list_presets() -> dict[str, list[str]]:
        return {
            "decoders": catalog.names(CodecKind.DECODER),
            "encoders": catalog.names(CodecKind.ENCODER),
        }

    @app.post("/api/presets/expand")
    async def expand_preset(payload: ExpandPayload) -> dict[str, object]:
        kind = CodecKind(payload.kind)
        template = expander.expand_template(kind, payload.name)
        return {
            "arguments": expander.expand(kind, payload.name, payload.raw_value),
            "deferred": bool(template is not None and template.deferred),
            "fields": list(template.field_names()) if template is not None else [],
        }

    @app.get("/api/events")
    async def list_events(limit: int = 50, device_id: str | None = None) -> dict[str, object]:
        entries = event_log.tail(limit, device_id=device_id)
        return {"events": [entry.to_dict() for entry in entries]}

    return app


__all__ = ["CameraDevice", "create_app"]
