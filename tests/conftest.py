from __future__ import annotations

from typing import Sequence

import pytest

from cam_bridge.capabilities import ObjectClasses, StreamChannel
from cam_bridge.notifier import CallbackNotifier


class FakeCamera:
    """In-memory stand-in for a live camera."""

    def __init__(
        self,
        channels: Sequence[str] = ("main", "sub"),
        classes: Sequence[str] | None = ("person", "motion", "car"),
        *,
        fail_channels: bool = False,
        fail_classes: bool = False,
    ) -> None:
        self.channels = list(channels)
        self.classes = None if classes is None else list(classes)
        self.fail_channels = fail_channels
        self.fail_classes = fail_classes
        self.class_queries = 0

    async def list_stream_channels(self) -> list[StreamChannel]:
        if self.fail_channels:
            raise ConnectionError("camera offline")
        return [StreamChannel(name) for name in self.channels]

    async def list_object_classes(self) -> ObjectClasses | None:
        self.class_queries += 1
        if self.fail_classes:
            raise TimeoutError("detector timed out")
        if self.classes is None:
            return None
        return ObjectClasses(tuple(self.classes))


class RecordingNotifier(CallbackNotifier):
    def __init__(self) -> None:
        self.reloads: list[str] = []
        self.changes: list[str] = []
        super().__init__(on_reload=self.reloads.append, on_settings_changed=self.changes.append)


@pytest.fixture()
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
