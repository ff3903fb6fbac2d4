"""
HTS221 Module
=============

ST HTS221 humidity and temperature sensor. Raw readings are converted with
the two-point linear calibration stored in the sensor at the factory.
"""

import threading
import time
from typing import Optional
import logging

from .i2c import BusError, RegisterReadError, RegisterReader

logger = logging.getLogger(__name__)


HTS221_ADDR = 0x5F
CTRL_REG1 = 0x20
INIT_DATA = 0x85  # PD=1, ODR0=1, BDU=1

HUMIDITY_OUT_L = 0x28
HUMIDITY_OUT_H = 0x29
TEMP_OUT_L = 0x2A
TEMP_OUT_H = 0x2B

# Factory calibration registers
H0_RH_X2 = 0x30
H1_RH_X2 = 0x31
T0_DEGC_X8 = 0x32
T1_DEGC_X8 = 0x33
T1_T0_MSB = 0x35
H0_T0_OUT_L = 0x36
H0_T0_OUT_H = 0x37
H1_T0_OUT_L = 0x3A
H1_T0_OUT_H = 0x3B
T0_OUT_L = 0x3C
T0_OUT_H = 0x3D
T1_OUT_L = 0x3E
T1_OUT_H = 0x3F


class HTS221:
    """Rate-limited HTS221 reader with cached humidity and temperature."""

    def __init__(self, device):
        """
        Power up the sensor and read its calibration.

        Raises:
            BusError: the sensor cannot be configured or calibration read
        """
        self._device = device
        self._lock = threading.Lock()
        self._cached_at: Optional[float] = None
        self._humidity = 0.0
        self._temperature = 0.0

        with device.lock:
            try:
                device.set_address(HTS221_ADDR)
                device.write_byte_data(CTRL_REG1, INIT_DATA)
            except BusError as e:
                raise BusError(f"initialize HTS221: {e}") from e

            r = RegisterReader(device)

            self.h0_rh = r.byte(H0_RH_X2) / 2
            self.h1_rh = r.byte(H1_RH_X2) / 2
            t1t0msb = r.byte(T1_T0_MSB)
            self.t0_degc = (r.byte(T0_DEGC_X8) + ((t1t0msb & 0x3) << 8)) / 8
            self.t1_degc = (r.byte(T1_DEGC_X8) + ((t1t0msb & 0xC) << 6)) / 8

            self.h0_t0_out = float(r.signed(H0_T0_OUT_H, H0_T0_OUT_L))
            self.h1_t0_out = float(r.signed(H1_T0_OUT_H, H1_T0_OUT_L))
            self.t0_out = float(r.signed(T0_OUT_H, T0_OUT_L))
            self.t1_out = float(r.signed(T1_OUT_H, T1_OUT_L))

            if r.error is not None:
                raise RegisterReadError(f"read calibration data: {r.error}") from r.error

        if self.t1_out == self.t0_out or self.h1_t0_out == self.h0_t0_out:
            raise BusError("read calibration data: degenerate calibration points")

        self.t_slope = (self.t1_degc - self.t0_degc) / (self.t1_out - self.t0_out)
        self.h_slope = (self.h1_rh - self.h0_rh) / (self.h1_t0_out - self.h0_t0_out)
        logger.info("HTS221 initialized")

    def refresh(self, max_age: float):
        """
        Read humidity and temperature unless the cache is younger than max_age.

        Raises:
            BusError: the read failed; cached values are kept
        """
        with self._lock:
            if self._cached_at is not None and time.monotonic() - self._cached_at < max_age:
                return

            with self._device.lock:
                try:
                    self._device.set_address(HTS221_ADDR)
                except BusError as e:
                    raise BusError(f"set device address: {e}") from e

                r = RegisterReader(self._device)
                raw_h = r.signed(HUMIDITY_OUT_H, HUMIDITY_OUT_L)
                raw_t = r.signed(TEMP_OUT_H, TEMP_OUT_L)
                if r.error is not None:
                    raise RegisterReadError(f"read data: {r.error}") from r.error

            self._humidity = (raw_h - self.h0_t0_out) * self.h_slope + self.h0_rh
            self._temperature = (raw_t - self.t0_out) * self.t_slope + self.t0_degc
            self._cached_at = time.monotonic()

    def humidity(self) -> float:
        """Relative humidity in percent."""
        with self._lock:
            return self._humidity

    def temperature(self) -> float:
        """Temperature in degrees Celsius."""
        with self._lock:
            return self._temperature
