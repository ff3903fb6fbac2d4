"""
Tests for I2C Register Access
=============================

Tests for:
- Two's-complement decoding
- RegisterReader read order and sticky errors
- I2CDevice (mocked smbus2)
"""

import pytest
from unittest.mock import MagicMock, patch

from boatpi.sensors.i2c import (
    BusError,
    I2CDevice,
    RegisterReadError,
    RegisterReader,
    signed,
)


# =============================================================================
# Test Decoding
# =============================================================================

class TestSigned:
    """Tests for signed() decoding."""

    @pytest.mark.parametrize("data,expected", [
        (bytes([0x00, 0x01]), 1),
        (bytes([0x7f, 0xff]), 32767),
        (bytes([0x80, 0x00]), -32768),
        (bytes([0xff, 0xff]), -1),
        (bytes([0x3f, 0x54, 0x00]), 0x3f5400),
        (bytes([0xff, 0xff, 0xfe]), -2),
        (bytes([0x80]), -128),
    ])
    def test_values(self, data, expected):
        assert signed(data) == expected

    def test_first_byte_most_significant(self):
        assert signed(bytes([0x01, 0x00])) == 256


# =============================================================================
# Test RegisterReader
# =============================================================================

class TestRegisterReader:
    """Tests for RegisterReader."""

    def test_read_order_last_to_first(self, fake_bus):
        """Registers are read last to first, result is in argument order."""
        fake_bus.set_address(0x10)
        fake_bus.registers[(0x10, 0x29)] = 0x12
        fake_bus.registers[(0x10, 0x28)] = 0x34

        r = RegisterReader(fake_bus)
        assert r.read(0x29, 0x28) == bytes([0x12, 0x34])
        assert fake_bus.reads == [(0x10, 0x28), (0x10, 0x29)]

    def test_signed_assembles_value(self, fake_bus):
        fake_bus.set_address(0x10)
        fake_bus.set_value(0x10, 0x28, -1234)

        r = RegisterReader(fake_bus)
        assert r.signed(0x29, 0x28) == -1234
        assert r.error is None

    def test_three_byte_value(self, fake_bus):
        fake_bus.set_address(0x10)
        fake_bus.set_value(0x10, 0x28, 0x3f5400, size=3)

        r = RegisterReader(fake_bus)
        assert r.signed(0x2a, 0x29, 0x28) == 0x3f5400

    def test_byte_is_unsigned(self, fake_bus):
        fake_bus.set_address(0x10)
        fake_bus.registers[(0x10, 0x30)] = 0xff

        r = RegisterReader(fake_bus)
        assert r.byte(0x30) == 255

    def test_read_raises_register_read_error(self, fake_bus):
        fake_bus.set_address(0x10)
        fake_bus.fail_reads.add((0x10, 0x28))

        r = RegisterReader(fake_bus)
        with pytest.raises(RegisterReadError, match="read byte register"):
            r.read(0x29, 0x28)

    def test_error_is_sticky(self, fake_bus):
        """After the first failure no further bus reads happen."""
        fake_bus.set_address(0x10)
        fake_bus.fail_reads.add((0x10, 0x28))
        fake_bus.registers[(0x10, 0x30)] = 7

        r = RegisterReader(fake_bus)
        assert r.signed(0x29, 0x28) == 0
        first_error = r.error
        assert isinstance(first_error, RegisterReadError)

        reads_before = len(fake_bus.reads)
        assert r.signed(0x2b, 0x2a) == 0
        assert r.byte(0x30) == 0
        assert len(fake_bus.reads) == reads_before
        assert r.error is first_error

    def test_reset_clears_error(self, fake_bus):
        fake_bus.set_address(0x10)
        fake_bus.fail_reads.add((0x10, 0x28))
        fake_bus.registers[(0x10, 0x30)] = 7

        r = RegisterReader(fake_bus)
        r.byte(0x28)
        assert r.error is not None

        r.reset()
        assert r.error is None
        assert r.byte(0x30) == 7


# =============================================================================
# Test I2CDevice
# =============================================================================

class TestI2CDevice:
    """Tests for I2CDevice with mocked smbus2."""

    @pytest.fixture
    def smbus(self):
        with patch('boatpi.sensors.i2c.HAS_SMBUS', True), \
             patch('boatpi.sensors.i2c.smbus2') as mock_smbus:
            mock_smbus.SMBus.return_value = MagicMock()
            yield mock_smbus

    def test_missing_smbus(self):
        with patch('boatpi.sensors.i2c.HAS_SMBUS', False):
            with pytest.raises(BusError, match="smbus2 not installed"):
                I2CDevice(1)

    def test_open_failure(self, smbus):
        smbus.SMBus.side_effect = OSError("No such file")
        with pytest.raises(BusError, match="open I2C device"):
            I2CDevice("/dev/i2c-9")

    def test_read_uses_selected_address(self, smbus):
        bus = smbus.SMBus.return_value
        bus.read_byte_data.return_value = 0x42

        dev = I2CDevice(1)
        dev.set_address(0x6a)
        assert dev.read_byte_data(0x28) == 0x42
        bus.read_byte_data.assert_called_once_with(0x6a, 0x28)

    def test_write_uses_selected_address(self, smbus):
        bus = smbus.SMBus.return_value

        dev = I2CDevice(1)
        dev.set_address(0x1c)
        dev.write_byte_data(0x20, 0x90)
        bus.write_byte_data.assert_called_once_with(0x1c, 0x20, 0x90)

    def test_read_without_address(self, smbus):
        dev = I2CDevice(1)
        with pytest.raises(BusError, match="no device address"):
            dev.read_byte_data(0x28)

    def test_read_error_translated(self, smbus):
        smbus.SMBus.return_value.read_byte_data.side_effect = OSError(121, "Remote I/O error")

        dev = I2CDevice(1)
        dev.set_address(0x6a)
        with pytest.raises(RegisterReadError):
            dev.read_byte_data(0x28)

    def test_write_error_translated(self, smbus):
        smbus.SMBus.return_value.write_byte_data.side_effect = OSError(121, "Remote I/O error")

        dev = I2CDevice(1)
        dev.set_address(0x6a)
        with pytest.raises(BusError):
            dev.write_byte_data(0x20, 0x20)

    def test_close(self, smbus):
        bus = smbus.SMBus.return_value

        dev = I2CDevice(1)
        dev.close()
        bus.close.assert_called_once()

        with pytest.raises(BusError, match="bus closed"):
            dev.set_address(0x6a)

        # Second close is a no-op
        dev.close()
        bus.close.assert_called_once()
