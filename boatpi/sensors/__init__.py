"""
Sense HAT Sensor Drivers
========================

Register-level drivers for the sensors on the Raspberry Pi Sense HAT:
    - LSM9DS1: accelerometer and magnetometer, with auto-calibration
    - AveragedLSM9DS1: windowed, outlier-resistant LSM9DS1 view
    - HTS221: humidity and temperature
    - LPS25H: pressure and temperature
"""

from .i2c import (
    I2CDevice,
    RegisterReader,
    BusError,
    RegisterReadError,
    HAS_SMBUS,
)

from .lsm9ds1 import (
    LSM9DS1,
    Calibration,
    CalibrationTracker,
    compass,
    angle,
)

from .averaged_lsm9ds1 import (
    AveragedLSM9DS1,
    SlidingWindow,
)

from .hts221 import HTS221
from .lps25h import LPS25H

__all__ = [
    'I2CDevice',
    'RegisterReader',
    'BusError',
    'RegisterReadError',
    'HAS_SMBUS',
    'LSM9DS1',
    'Calibration',
    'CalibrationTracker',
    'compass',
    'angle',
    'AveragedLSM9DS1',
    'SlidingWindow',
    'HTS221',
    'LPS25H',
]
