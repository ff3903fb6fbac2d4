"""
Averaged LSM9DS1 Module
=======================

Smoothed, outlier-resistant view of an LSM9DS1.

A background thread samples the driver at a fixed interval and keeps the last
``total / interval`` acceleration vectors and tilt angles. Consumers get the
middle sample of the window (a cheap stand-in for a median, no sorting) and
the peak-to-peak spread of the angles as a stability indicator.
"""

import threading
import time
from typing import Optional, Sequence, Tuple
import logging

import numpy as np

from .i2c import BusError
from .lsm9ds1 import LSM9DS1, Calibration, Vector, angle

logger = logging.getLogger(__name__)


# =============================================================================
# Sliding Window
# =============================================================================

class SlidingWindow:
    """
    Fixed-capacity FIFO of fixed-width samples.

    Backed by a preallocated numpy array with a head index; once full, each
    push overwrites the oldest sample. Not thread-safe on its own.
    """

    def __init__(self, capacity: int, width: int = 3, dtype=np.float64):
        if capacity < 1:
            raise ValueError(f"window capacity must be at least 1, got {capacity}")
        self._data = np.zeros((capacity, width), dtype=dtype)
        self._head = 0
        self._len = 0

    @property
    def capacity(self) -> int:
        return self._data.shape[0]

    def __len__(self) -> int:
        return self._len

    def push(self, sample: Sequence):
        cap = self.capacity
        if self._len < cap:
            self._data[(self._head + self._len) % cap] = sample
            self._len += 1
        else:
            self._data[self._head] = sample
            self._head = (self._head + 1) % cap

    def samples(self) -> np.ndarray:
        """Copy of the stored samples, oldest first."""
        idx = (self._head + np.arange(self._len)) % self.capacity
        return self._data[idx]

    def middle(self) -> np.ndarray:
        """Sample at position len // 2 in time order, zeros if empty."""
        if self._len == 0:
            return np.zeros(self._data.shape[1], dtype=self._data.dtype)
        return self._data[(self._head + self._len // 2) % self.capacity].copy()

    def peak_to_peak(self) -> np.ndarray:
        """Per-column max - min over the window, zeros if empty."""
        if self._len == 0:
            return np.zeros(self._data.shape[1], dtype=self._data.dtype)
        data = self.samples()
        return data.max(axis=0) - data.min(axis=0)


# =============================================================================
# Averaged LSM9DS1
# =============================================================================

class AveragedLSM9DS1:
    """
    Periodically sampled LSM9DS1 with windowed acceleration and tilt angles.

    Holds a reference to the driver; raw queries are forwarded to it, windowed
    queries are served from this object's own windows under its own lock, so
    readers never wait on the bus.
    """

    def __init__(self, lsm9ds1: LSM9DS1, total: float = 60.0, interval: float = 0.5,
                 offsets: Tuple[float, float, float] = (0.0, 0.0, 0.0)):
        """
        Args:
            lsm9ds1: Driver to sample
            total: Window duration in seconds
            interval: Sampling interval in seconds
            offsets: Angle offsets (a, b, c) in degrees for mounting alignment
        """
        self.lsm9ds1 = lsm9ds1
        self.interval = interval
        self.offsets = offsets

        size = int(total / interval)
        self._lock = threading.Lock()
        self._accel = SlidingWindow(size, dtype=np.int16)
        self._angles = SlidingWindow(size, dtype=np.float64)

        self._running = False
        self._thread: Optional[threading.Thread] = None

        # Statistics
        self._sample_count = 0
        self._error_count = 0
        self._last_sample_time: Optional[float] = None

    def start(self):
        """Start the sampling thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._update_loop, daemon=True)
        self._thread.start()
        logger.info(f"LSM9DS1 sampling every {self.interval}s into {self._angles.capacity} samples")

    def stop(self):
        """Stop the sampling thread."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=max(1.0, 2 * self.interval))
            self._thread = None

    def _update_loop(self):
        """Background thread sampling at a fixed rate."""
        next_update = time.monotonic()

        while self._running:
            now = time.monotonic()

            if now >= next_update:
                try:
                    self.sample()
                except Exception as e:
                    with self._lock:
                        self._error_count += 1
                    logger.warning(f"LSM9DS1 sample error: {e}")

                next_update += self.interval
                if next_update < now:
                    next_update = now + self.interval
            else:
                time.sleep(min(0.01, next_update - now))

    def sample(self) -> bool:
        """
        Take one sample: refresh the driver and push into the windows.

        Returns:
            False if the refresh failed and nothing was recorded
        """
        try:
            self.lsm9ds1.refresh(self.interval / 2)
        except BusError as e:
            with self._lock:
                self._error_count += 1
            logger.debug(f"Skipping sample: {e}")
            return False

        x, y, z = self.lsm9ds1.acceleration()
        ao, bo, co = self.offsets
        a = angle(z, y, ao)
        b = angle(z, x, bo)
        c = angle(y, x, co)

        with self._lock:
            self._accel.push((x, y, z))
            self._angles.push((a, b, c))
            self._sample_count += 1
            self._last_sample_time = time.monotonic()
        return True

    def acceleration(self) -> Vector:
        """Middle acceleration sample of the window."""
        with self._lock:
            m = self._accel.middle()
        return int(m[0]), int(m[1]), int(m[2])

    def acceleration_angles(self) -> Tuple[float, float, float]:
        """Middle tilt angle sample (a, b, c) of the window."""
        with self._lock:
            m = self._angles.middle()
        return float(m[0]), float(m[1]), float(m[2])

    def deviation(self) -> Tuple[float, float, float]:
        """Peak-to-peak spread of each tilt angle over the window."""
        with self._lock:
            d = self._angles.peak_to_peak()
        return float(d[0]), float(d[1]), float(d[2])

    def raw_acceleration(self) -> Vector:
        return self.lsm9ds1.acceleration()

    def magnetic_field(self) -> Vector:
        return self.lsm9ds1.magnetic_field()

    def compass(self) -> Tuple[float, float, float]:
        return self.lsm9ds1.compass()

    def calibration(self) -> Calibration:
        return self.lsm9ds1.calibration()

    @property
    def stats(self) -> dict:
        """Get statistics about sampling."""
        with self._lock:
            filled = len(self._angles)
            sample_count = self._sample_count
            error_count = self._error_count
            last = self._last_sample_time
        return {
            "sample_count": sample_count,
            "error_count": error_count,
            "window_size": filled,
            "window_capacity": self._angles.capacity,
            "last_sample_age_ms": (time.monotonic() - last) * 1000 if last is not None else float('inf'),
            "running": self._running,
        }
