"""
LSM9DS1 Module
==============

ST LSM9DS1 iNEMO inertial module (3D accelerometer, 3D magnetometer) as
fitted to the Raspberry Pi Sense HAT.

Features:
- Rate-limited refresh of raw acceleration and magnetic field vectors
- Last-known-good values when the bus misbehaves
- Continuous min/max auto-calibration of the magnetometer bias
- Compass headings in three planes with a configurable mounting offset

The gyroscope is left in power-down.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

from .i2c import BusError, RegisterReadError, RegisterReader

logger = logging.getLogger(__name__)

Vector = Tuple[int, int, int]


# =============================================================================
# Register Definitions
# =============================================================================

# Accelerometer/gyroscope
ACCEL_ADDR = 0x6A
CTRL_REG6_XL = 0x20
ACCEL_INIT_DATA = 0b001_00_000  # ODR 10 Hz, +-2g
OUT_X_L_XL = 0x28
OUT_Y_L_XL = 0x2A
OUT_Z_L_XL = 0x2C

# Magnetometer
MAG_ADDR = 0x1C
OUT_X_L_M = 0x28
OUT_Y_L_M = 0x2A
OUT_Z_L_M = 0x2C

MAG_INIT_DATA = (
    (0x20, 0b1001_0000),  # CTRL_REG1_M: temp comp, 10 Hz
    (0x21, 0b0000_1100),  # CTRL_REG2_M: reboot, soft reset
    (0x22, 0b0000_0000),  # CTRL_REG3_M: continuous conversion
)


# =============================================================================
# Angle Computation
# =============================================================================

def compass(y: float, x: float, offset: float = 0.0) -> float:
    """Heading of (x, y) in degrees plus offset, normalized to [0, 360)."""
    v = math.degrees(math.atan2(y, x)) + offset
    v %= 360.0
    # -1e-17 % 360.0 rounds to 360.0
    if v >= 360.0:
        v -= 360.0
    return v


def angle(y: float, x: float, offset: float = 0.0) -> float:
    """Angle of (x, y) in degrees plus offset, normalized to (-180, 180]."""
    v = math.degrees(math.atan2(y, x)) + offset
    v = 180.0 - (180.0 - v) % 360.0
    if v <= -180.0:
        v += 360.0
    return v


# =============================================================================
# Calibration
# =============================================================================

@dataclass
class Calibration:
    """Observed magnetometer extrema per axis. Zero means not yet observed."""
    min_x: int = 0
    max_x: int = 0
    min_y: int = 0
    max_y: int = 0
    min_z: int = 0
    max_z: int = 0

    def midpoint(self) -> Vector:
        """Bias per axis, truncated toward zero."""
        return (int((self.max_x + self.min_x) / 2),
                int((self.max_y + self.min_y) / 2),
                int((self.max_z + self.min_z) / 2))

    def copy(self) -> 'Calibration':
        return Calibration(self.min_x, self.max_x, self.min_y,
                           self.max_y, self.min_z, self.max_z)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "min": {"x": self.min_x, "y": self.min_y, "z": self.min_z},
            "max": {"x": self.max_x, "y": self.max_y, "z": self.max_z},
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Calibration':
        """Create from dictionary."""
        lo = data.get("min", {})
        hi = data.get("max", {})
        return cls(
            min_x=int(lo.get("x", 0)), max_x=int(hi.get("x", 0)),
            min_y=int(lo.get("y", 0)), max_y=int(hi.get("y", 0)),
            min_z=int(lo.get("z", 0)), max_z=int(hi.get("z", 0)),
        )


class CalibrationTracker:
    """
    Running min/max window of magnetometer readings.

    The window only ever widens, so the bias converges as the sensor is
    rotated through more orientations. A bound of exactly 0 counts as unset:
    a reading of 0 never tightens a bound and the next reading replaces it.
    """

    def __init__(self, calibration: Optional[Calibration] = None):
        self._cal = calibration.copy() if calibration is not None else Calibration()

    def observe(self, x: int, y: int, z: int):
        c = self._cal
        if c.max_x == 0 or x > c.max_x:
            c.max_x = x
        if c.min_x == 0 or x < c.min_x:
            c.min_x = x
        if c.max_y == 0 or y > c.max_y:
            c.max_y = y
        if c.min_y == 0 or y < c.min_y:
            c.min_y = y
        if c.max_z == 0 or z > c.max_z:
            c.max_z = z
        if c.min_z == 0 or z < c.min_z:
            c.min_z = z

    def snapshot(self) -> Calibration:
        return self._cal.copy()


# =============================================================================
# LSM9DS1 Driver
# =============================================================================

class LSM9DS1:
    """
    Accelerometer and magnetometer halves of the LSM9DS1.

    All cached state is guarded by one lock held for an entire refresh;
    getters return copies and never touch the bus.
    """

    def __init__(self, device, magnetic_offset: float = 0.0,
                 calibration: Optional[Calibration] = None):
        """
        Initialize both sensors.

        Args:
            device: Bus device (see I2CDevice)
            magnetic_offset: Compass heading offset in degrees
            calibration: Previously persisted calibration, if any

        Raises:
            BusError: a device cannot be addressed or the accelerometer
                cannot be configured
        """
        self._device = device
        self._lock = threading.Lock()
        self._tracker = CalibrationTracker(calibration)
        self.magnetic_offset = magnetic_offset

        self._cached_at: Optional[float] = None
        self._accel: Vector = (0, 0, 0)
        self._mag: Vector = (0, 0, 0)

        with device.lock:
            self._initialize()

    def _initialize(self):
        self._select(ACCEL_ADDR)
        try:
            self._device.write_byte_data(CTRL_REG6_XL, ACCEL_INIT_DATA)
        except BusError as e:
            raise BusError(f"write control register 6_XL: {e}") from e

        self._select(MAG_ADDR)
        for reg, value in MAG_INIT_DATA:
            try:
                self._device.write_byte_data(reg, value)
            except BusError as e:
                logger.warning(f"write control register 0x{value:02x}->0x{reg:02x}: {e}")

        logger.info("LSM9DS1 initialized")

    def _select(self, address: int):
        try:
            self._device.set_address(address)
        except BusError as e:
            raise BusError(f"set device address 0x{address:02x}: {e}") from e

    def refresh(self, max_age: float):
        """
        Read fresh acceleration and magnetic field vectors.

        Does nothing if the last successful refresh is younger than max_age
        seconds. On failure the previously cached values are kept.

        Raises:
            BusError: addressing or register reads failed
        """
        with self._lock:
            if self._cached_at is not None and time.monotonic() - self._cached_at < max_age:
                return

            with self._device.lock:
                r = RegisterReader(self._device)

                self._select(ACCEL_ADDR)
                accel = (
                    r.signed(OUT_X_L_XL + 1, OUT_X_L_XL),
                    r.signed(OUT_Y_L_XL + 1, OUT_Y_L_XL),
                    r.signed(OUT_Z_L_XL + 1, OUT_Z_L_XL),
                )
                if r.error is not None:
                    raise RegisterReadError(f"read acceleration data: {r.error}") from r.error

                self._select(MAG_ADDR)
                mag = (
                    r.signed(OUT_X_L_M + 1, OUT_X_L_M),
                    r.signed(OUT_Y_L_M + 1, OUT_Y_L_M),
                    r.signed(OUT_Z_L_M + 1, OUT_Z_L_M),
                )
                if r.error is not None:
                    raise RegisterReadError(f"read magnetic data: {r.error}") from r.error

            self._tracker.observe(*mag)
            self._accel = accel
            self._mag = mag
            self._cached_at = time.monotonic()

    def acceleration(self) -> Vector:
        """Most recent raw acceleration (x, y, z)."""
        with self._lock:
            return self._accel

    def magnetic_field(self) -> Vector:
        """Most recent raw magnetic field (x, y, z)."""
        with self._lock:
            return self._mag

    def calibration(self) -> Calibration:
        """Snapshot of the current magnetometer calibration."""
        with self._lock:
            return self._tracker.snapshot()

    def compass(self) -> Tuple[float, float, float]:
        """
        Compass headings in the xy, xz and yz planes.

        The magnetic field is recentered on the calibration midpoint before
        the heading offset is applied.

        Returns:
            (xy, xz, yz) in degrees, each in [0, 360)
        """
        with self._lock:
            bx, by, bz = self._tracker.snapshot().midpoint()
            mx, my, mz = self._mag
        x = float(mx - bx)
        y = float(my - by)
        z = float(mz - bz)
        o = self.magnetic_offset
        return compass(y, x, o), compass(z, x, o), compass(z, y, o)

    def acceleration_angles(self) -> Tuple[float, float, float]:
        """Unsmoothed tilt angles of the acceleration vector (xy, xz, yz)."""
        with self._lock:
            ax, ay, az = self._accel
        return angle(ay, ax), angle(az, ax), angle(az, ay)
