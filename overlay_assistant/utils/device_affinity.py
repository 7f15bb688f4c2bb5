"""
Device affinity stores.

The affinity is the last device the media service reported as ready. It is
passed along with control calls so playback targets a warm device, and it is
cleared whenever the service reports that device as not found.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .logging_config import get_logger


logger = get_logger("device_affinity")


class DeviceAffinityStore(ABC):
    """Narrow get/set/clear interface over the remembered device id."""

    @abstractmethod
    def get(self) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, device_id: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryDeviceAffinityStore(DeviceAffinityStore):
    """Process-local affinity, forgotten on restart."""

    def __init__(self, device_id: Optional[str] = None):
        self._device_id = (device_id or "").strip() or None

    def get(self) -> Optional[str]:
        return self._device_id

    def set(self, device_id: str) -> None:
        self._device_id = (device_id or "").strip() or None

    def clear(self) -> None:
        self._device_id = None


class FileDeviceAffinityStore(DeviceAffinityStore):
    """
    Affinity persisted to a small JSON file so it survives restarts.

    File format: ``{"deviceId": "<id>"}``. A missing or unreadable file means
    no affinity.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._device_id: Optional[str] = self._read()

    def _read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable device affinity file {self.path}: {e}")
            return None
        value = data.get("deviceId") if isinstance(data, dict) else None
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def get(self) -> Optional[str]:
        return self._device_id

    def set(self, device_id: str) -> None:
        device_id = (device_id or "").strip()
        if not device_id:
            self.clear()
            return
        self._device_id = device_id
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"deviceId": device_id}), encoding="utf-8")

    def clear(self) -> None:
        self._device_id = None
        if self.path.exists():
            self.path.unlink()
