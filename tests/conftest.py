"""
Shared test fixtures for sensor unit tests.
"""

import threading

import pytest

from boatpi.sensors.i2c import BusError, RegisterReadError
from boatpi.sensors.lsm9ds1 import ACCEL_ADDR, MAG_ADDR, OUT_X_L_XL, OUT_X_L_M


class FakeI2CDevice:
    """
    In-memory register map standing in for the I2C bus.

    Registers are keyed by (address, register). Failures are injected per
    address (set_address), per register (reads/writes) or for all reads.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self.address = None
        self.registers = {}
        self.fail_addresses = set()
        self.fail_reads = set()
        self.fail_writes = set()
        self.fail_all_reads = False
        self.reads = []
        self.writes = []
        self.selects = []
        self.closed = False

    def set_address(self, address):
        self.selects.append(address)
        if address in self.fail_addresses:
            raise BusError(f"no device at 0x{address:02x}")
        self.address = address

    def read_byte_data(self, register):
        key = (self.address, register)
        self.reads.append(key)
        if self.fail_all_reads or key in self.fail_reads:
            raise RegisterReadError(f"read 0x{register:02x} failed")
        return self.registers.get(key, 0)

    def write_byte_data(self, register, value):
        key = (self.address, register)
        if key in self.fail_writes:
            raise BusError(f"write 0x{register:02x} failed")
        self.writes.append((self.address, register, value))
        self.registers[key] = value

    def close(self):
        self.closed = True

    def set_value(self, address, low_register, value, size=2):
        """Store a signed value little-endian across consecutive registers."""
        raw = value & ((1 << (8 * size)) - 1)
        for i in range(size):
            self.registers[(address, low_register + i)] = (raw >> (8 * i)) & 0xFF

    def set_vector(self, address, low_register, vector):
        for i, value in enumerate(vector):
            self.set_value(address, low_register + 2 * i, value)

    def set_lsm9ds1(self, accel=(0, 0, 0), mag=(0, 0, 0)):
        self.set_vector(ACCEL_ADDR, OUT_X_L_XL, accel)
        self.set_vector(MAG_ADDR, OUT_X_L_M, mag)


@pytest.fixture
def fake_bus():
    """Empty fake I2C bus."""
    return FakeI2CDevice()


@pytest.fixture
def hts221_bus(fake_bus):
    """
    Fake bus with HTS221 factory calibration.

    Humidity: 32 %rH at raw 0, 64 %rH at raw 1000.
    Temperature: 20 degC at raw 100, 36 degC at raw 1700.
    """
    addr = 0x5F
    fake_bus.registers[(addr, 0x30)] = 64     # H0_rH_x2
    fake_bus.registers[(addr, 0x31)] = 128    # H1_rH_x2
    fake_bus.registers[(addr, 0x32)] = 160    # T0_degC_x8
    fake_bus.registers[(addr, 0x33)] = 32     # T1_degC_x8
    fake_bus.registers[(addr, 0x35)] = 0b0100  # T1 msb = 1
    fake_bus.set_value(addr, 0x36, 0)       # H0_T0_OUT
    fake_bus.set_value(addr, 0x3A, 1000)    # H1_T0_OUT
    fake_bus.set_value(addr, 0x3C, 100)     # T0_OUT
    fake_bus.set_value(addr, 0x3E, 1700)    # T1_OUT
    return fake_bus
