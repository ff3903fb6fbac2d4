"""
I2C Register Access
===================

Byte-level register access to the Sense HAT sensors on the Raspberry Pi I2C bus.

Two layers:
- I2CDevice: thin wrapper around smbus2 with a stateful "selected address",
  matching how the sensors are addressed one at a time on a shared bus.
- RegisterReader: assembles signed values from one or more 8-bit registers and
  accumulates the first read error so a driver can issue many reads and check
  for failure once.

Requirements:
- smbus2: pip install smbus2
- I2C enabled on Pi: sudo raspi-config -> Interface Options -> I2C
"""

import threading
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)

# Try to import smbus2 (optional for testing without hardware)
try:
    import smbus2
    HAS_SMBUS = True
except ImportError:
    smbus2 = None
    HAS_SMBUS = False


# =============================================================================
# Errors
# =============================================================================

class BusError(Exception):
    """Addressing or transport failure on the I2C bus."""


class RegisterReadError(BusError):
    """A register read failed."""


# =============================================================================
# Bus Device
# =============================================================================

class I2CDevice:
    """
    I2C bus handle with a selected target address.

    Address selection is state shared by every sensor on the bus, so drivers
    hold ``lock`` for an entire select-then-read sequence.
    """

    def __init__(self, bus: Union[int, str] = 1):
        """
        Open the I2C bus.

        Args:
            bus: I2C bus number (1 for Pi) or device path such as /dev/i2c-1

        Raises:
            BusError: smbus2 is missing or the bus cannot be opened
        """
        if not HAS_SMBUS:
            raise BusError("smbus2 not installed. Run: pip install smbus2")

        self.bus = bus
        self.lock = threading.RLock()
        self.address: Optional[int] = None
        try:
            self._bus = smbus2.SMBus(bus)
        except (OSError, ValueError) as e:
            raise BusError(f"open I2C device {bus}: {e}") from e

    def set_address(self, address: int):
        """Select the device subsequent register calls talk to."""
        if self._bus is None:
            raise BusError(f"set device address 0x{address:02x}: bus closed")
        self.address = address

    def read_byte_data(self, register: int) -> int:
        """Read a single byte from a register of the selected device."""
        self._check_address()
        try:
            return self._bus.read_byte_data(self.address, register)
        except OSError as e:
            raise RegisterReadError(
                f"read register 0x{register:02x} on 0x{self.address:02x}: {e}") from e

    def write_byte_data(self, register: int, value: int):
        """Write a single byte to a register of the selected device."""
        self._check_address()
        try:
            self._bus.write_byte_data(self.address, register, value)
        except OSError as e:
            raise BusError(
                f"write register 0x{register:02x} on 0x{self.address:02x}: {e}") from e

    def _check_address(self):
        if self._bus is None:
            raise BusError("bus closed")
        if self.address is None:
            raise BusError("no device address selected")

    def close(self):
        """Close the I2C bus."""
        if self._bus is not None:
            try:
                self._bus.close()
            except OSError as e:
                logger.debug(f"Error closing I2C bus {self.bus}: {e}")
            self._bus = None


# =============================================================================
# Register Reader
# =============================================================================

def signed(data: bytes) -> int:
    """
    Decode a two's-complement integer, first byte most significant.

    >>> signed(bytes([0xff, 0xff]))
    -1
    """
    return int.from_bytes(data, byteorder="big", signed=True)


class RegisterReader:
    """
    Reads multi-register values with a sticky error.

    After the first failure every ``signed``/``byte`` call returns 0 without
    touching the bus until ``reset`` is called. Callers check ``error`` once
    after a batch of reads.
    """

    def __init__(self, device):
        self.device = device
        self._error: Optional[BusError] = None

    @property
    def error(self) -> Optional[BusError]:
        """First error encountered, or None."""
        return self._error

    def reset(self):
        """Forget the accumulated error."""
        self._error = None

    def read(self, *regs: int) -> bytes:
        """
        Read one byte per register.

        Registers are given most significant first and read last to first, so
        the most significant byte is always the final bus transaction.

        Raises:
            RegisterReadError: a register read failed
        """
        res = bytearray(len(regs))
        for i in range(len(regs) - 1, -1, -1):
            try:
                res[i] = self.device.read_byte_data(regs[i])
            except BusError as e:
                raise RegisterReadError(f"read byte register: {e}") from e
        return bytes(res)

    def signed(self, *regs: int) -> int:
        """Read registers and decode them as a signed integer, 0 on error."""
        if self._error is not None:
            return 0
        try:
            data = self.read(*regs)
        except RegisterReadError as e:
            self._error = e
            return 0
        return signed(data)

    def byte(self, reg: int) -> int:
        """Read a single unsigned register value, 0 on error."""
        if self._error is not None:
            return 0
        try:
            data = self.read(reg)
        except RegisterReadError as e:
            self._error = e
            return 0
        return data[0]
