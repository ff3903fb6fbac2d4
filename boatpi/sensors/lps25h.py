"""ST LPS25H pressure and temperature sensor."""

import threading
import time
from typing import Optional
import logging

from .i2c import BusError, RegisterReadError, RegisterReader

logger = logging.getLogger(__name__)


LPS25H_ADDR = 0x5C
CTRL_REG1 = 0x20
INIT_DATA = 0x94  # PD=1, ODR=1 Hz, BDU=1

PRESS_OUT_XL = 0x28
PRESS_OUT_L = 0x29
PRESS_OUT_H = 0x2A
TEMP_OUT_L = 0x2B
TEMP_OUT_H = 0x2C

# Datasheet conversion constants
PRESSURE_SCALE = 4096.0     # LSB/hPa
TEMP_SCALE = 480.0          # LSB/degC
TEMP_OFFSET = 42.5          # degC


class LPS25H:
    """Rate-limited LPS25H reader with cached pressure and temperature."""

    def __init__(self, device):
        self._device = device
        self._lock = threading.Lock()
        self._cached_at: Optional[float] = None
        self._pressure = 0.0
        self._temperature = 0.0

        with device.lock:
            try:
                device.set_address(LPS25H_ADDR)
            except BusError as e:
                raise BusError(f"set device address: {e}") from e
            try:
                device.write_byte_data(CTRL_REG1, INIT_DATA)
            except BusError as e:
                raise BusError(f"write control register: {e}") from e
        logger.info("LPS25H initialized")

    def refresh(self, max_age: float):
        """
        Read pressure and temperature unless the cache is younger than max_age.

        Raises:
            BusError: the read failed; cached values are kept
        """
        with self._lock:
            if self._cached_at is not None and time.monotonic() - self._cached_at < max_age:
                return

            with self._device.lock:
                try:
                    self._device.set_address(LPS25H_ADDR)
                except BusError as e:
                    raise BusError(f"set device address: {e}") from e

                r = RegisterReader(self._device)
                raw_p = r.signed(PRESS_OUT_H, PRESS_OUT_L, PRESS_OUT_XL)
                raw_t = r.signed(TEMP_OUT_H, TEMP_OUT_L)
                if r.error is not None:
                    raise RegisterReadError(f"read data: {r.error}") from r.error

            self._pressure = raw_p / PRESSURE_SCALE
            self._temperature = raw_t / TEMP_SCALE + TEMP_OFFSET
            self._cached_at = time.monotonic()

    def pressure(self) -> float:
        """Pressure in hPa (millibar)."""
        with self._lock:
            return self._pressure

    def temperature(self) -> float:
        """Temperature in degrees Celsius."""
        with self._lock:
            return self._temperature
