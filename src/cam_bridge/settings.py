"""Per-camera settings facade tying storage, probing and presets together."""
from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

from .capabilities import CapabilityFlags, CapabilityProbe, CapabilitySet, probe_capabilities
from .config import ConfigStore, serialize_value, to_config_value
from .notifier import ChangeNotifier, requires_reload
from .presets import ArgumentExpander, ArgumentPresetCatalog, CodecKind, default_catalog
from .schema import (
    H264_ENCODER_ARGUMENTS_KEY,
    OBJECT_DETECTION_SENSORS_KEY,
    VIDEO_DECODER_ARGUMENTS_KEY,
    SchemaBuilder,
    SettingDescriptor,
)
from .transcode_mode import HUB_STREAMING_MODE_KEY, ModeResolver

logger = logging.getLogger(__name__)

_ARGUMENT_KEYS: dict[str, CodecKind] = {
    VIDEO_DECODER_ARGUMENTS_KEY: CodecKind.DECODER,
    H264_ENCODER_ARGUMENTS_KEY: CodecKind.ENCODER,
}


class SettingsProvider(Protocol):
    """Settings owned by the surrounding device integration."""

    def owns(self, key: str) -> bool:  # pragma: no cover - interface only
        ...

    async def get_settings(self) -> Sequence[SettingDescriptor]:  # pragma: no cover - interface only
        ...

    async def put_setting(self, key: str, value: Any) -> None:  # pragma: no cover - interface only
        ...


class CameraSettings:
    """Read and write the settings of a single camera."""

    def __init__(
        self,
        device_id: str,
        *,
        store: ConfigStore,
        probe: CapabilityProbe,
        flags: CapabilityFlags,
        notifier: ChangeNotifier,
        catalog: ArgumentPresetCatalog | None = None,
        provider: SettingsProvider | None = None,
    ) -> None:
        if not isinstance(device_id, str) or not device_id.strip():
            raise ValueError("Device identifier must be a non-empty string")
        self._device_id = device_id
        self._store = store
        self._probe = probe
        self._flags = flags
        self._notifier = notifier
        self._provider = provider
        self._catalog = catalog or default_catalog()
        self._expander = ArgumentExpander(self._catalog)
        self._resolver = ModeResolver(store)
        self._schema = SchemaBuilder(store=store, device_id=device_id, catalog=self._catalog)

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def store(self) -> ConfigStore:
        return self._store

    @property
    def expander(self) -> ArgumentExpander:
        return self._expander

    def delegates(self, key: str) -> bool:
        """Return ``True`` when *key* is stored by the owning provider."""

        return self._provider is not None and self._provider.owns(key)

    async def capabilities(self) -> CapabilitySet:
        return await probe_capabilities(self._probe, self._flags)

    async def get_settings(self) -> list[SettingDescriptor]:
        """Return the current descriptors, including those of the owning provider."""

        capabilities = await self.capabilities()
        tail: Sequence[SettingDescriptor] = ()
        if self._provider is not None:
            tail = await self._provider.get_settings()
        return self._schema.build(capabilities, tail)

    async def put_setting(self, key: str, value: Any) -> None:
        """Store *value* for *key*, normalising dependent keys first."""

        if not isinstance(key, str) or not key:
            raise ValueError("Setting key must be a non-empty string")
        if self.delegates(key):
            await self._provider.put_setting(key, value)
            return

        if key in _ARGUMENT_KEYS and value is not None:
            choice = str(value)
            value = self._expander.expand(_ARGUMENT_KEYS[key], choice, choice)

        if key == HUB_STREAMING_MODE_KEY and self._flags.native_stream_config:
            value = self._resolver.apply(value).value

        self._write(key, value)

        if requires_reload(key):
            self._notifier.notify_reload(self._device_id)
        self._notifier.notify_settings_changed(self._device_id)

    def _write(self, key: str, value: Any) -> None:
        if key == OBJECT_DETECTION_SENSORS_KEY and isinstance(value, str):
            # single selections arrive as a bare string
            value = [value]
        wrapped = to_config_value(value)
        if wrapped is None:
            self._store.remove(key)
            return
        self._store.set(key, serialize_value(wrapped))
        logger.debug("Stored %s for %s", key, self._device_id)


__all__ = ["CameraSettings", "SettingsProvider"]
