"""
Calibration Store
=================

Persistence for the LSM9DS1 magnetometer calibration.

Two encodings:
- JSON: human readable, {"min": {"x", "y", "z"}, "max": {...}}
- Binary: six big-endian int16 in the order min_x, max_x, min_y, max_y,
  min_z, max_z

CalibrationSaver polls a calibration source on its own thread and writes the
file only when the value changed since the last write.
"""

import json
import struct
import threading
from enum import Enum
from pathlib import Path
from typing import Optional, Union
import logging

from .sensors.lsm9ds1 import Calibration

logger = logging.getLogger(__name__)

BINARY_LAYOUT = struct.Struct(">6h")


class CalibrationFormat(Enum):
    """On-disk calibration encoding."""
    JSON = "json"
    BINARY = "binary"


def format_for_path(path: Union[str, Path]) -> CalibrationFormat:
    """JSON for *.json files, binary otherwise."""
    if Path(path).suffix.lower() == ".json":
        return CalibrationFormat.JSON
    return CalibrationFormat.BINARY


def encode(calibration: Calibration, fmt: CalibrationFormat) -> bytes:
    if fmt == CalibrationFormat.JSON:
        return (json.dumps(calibration.to_dict(), indent=2) + "\n").encode()
    return BINARY_LAYOUT.pack(
        calibration.min_x, calibration.max_x,
        calibration.min_y, calibration.max_y,
        calibration.min_z, calibration.max_z,
    )


def decode(data: bytes, fmt: CalibrationFormat) -> Calibration:
    """
    Raises:
        ValueError: the data is not a valid encoding
    """
    if fmt == CalibrationFormat.JSON:
        return Calibration.from_dict(json.loads(data))
    try:
        return Calibration(*BINARY_LAYOUT.unpack(data))
    except struct.error as e:
        raise ValueError(f"invalid binary calibration: {e}") from e


def load_calibration(path: Union[str, Path],
                     fmt: Optional[CalibrationFormat] = None) -> Calibration:
    """
    Load calibration from a file.

    A missing or unreadable file yields an empty calibration, which the
    tracker then fills in from scratch.
    """
    path = Path(path)
    fmt = fmt or format_for_path(path)

    if not path.exists():
        logger.info(f"No calibration at {path}, starting from scratch")
        return Calibration()

    try:
        cal = decode(path.read_bytes(), fmt)
    except (OSError, ValueError, AttributeError, TypeError) as e:
        logger.warning(f"Failed to load calibration from {path}: {e}")
        return Calibration()

    logger.info(f"Loaded calibration from {path}")
    return cal


def save_calibration(path: Union[str, Path], calibration: Calibration,
                     fmt: Optional[CalibrationFormat] = None) -> bool:
    """Save calibration to a file. Returns False on failure."""
    path = Path(path)
    fmt = fmt or format_for_path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(encode(calibration, fmt))
        logger.info(f"Saved calibration to {path}")
        return True
    except (OSError, struct.error) as e:
        logger.error(f"Failed to save calibration: {e}")
        return False


class CalibrationSaver:
    """
    Persists a changing calibration periodically.

    ``source`` is anything with a ``calibration()`` method returning a
    Calibration, typically an LSM9DS1 or AveragedLSM9DS1.
    """

    def __init__(self, source, path: Union[str, Path], interval: float = 60.0,
                 fmt: Optional[CalibrationFormat] = None,
                 initial: Optional[Calibration] = None):
        self.source = source
        self.path = Path(path)
        self.interval = interval
        self.fmt = fmt or format_for_path(self.path)

        self._last = initial.copy() if initial is not None else Calibration()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.save_count = 0

    def check(self) -> bool:
        """
        Save the current calibration if it changed.

        Returns:
            True if the file was written
        """
        current = self.source.calibration()
        if current == self._last:
            return False
        if not save_calibration(self.path, current, self.fmt):
            return False
        self._last = current
        self.save_count += 1
        return True

    def start(self):
        """Start the periodic save thread."""
        self._stop.clear()
        self._thread = threading.Thread(target=self._save_loop, daemon=True)
        self._thread.start()

    def stop(self, final_save: bool = True):
        """Stop the save thread, optionally persisting one last time."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None
        if final_save:
            self.check()

    def _save_loop(self):
        while not self._stop.wait(self.interval):
            try:
                self.check()
            except Exception as e:
                logger.warning(f"Calibration save error: {e}")
