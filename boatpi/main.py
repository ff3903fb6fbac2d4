"""
Sense HAT Exporter
==================

Main entry point: opens the I2C bus, brings up the Sense HAT sensors, keeps
the magnetometer calibration persisted and serves metrics over HTTP.
"""

import signal
import sys
import argparse
import logging
from dataclasses import dataclass
from typing import Optional

from .calibration_store import CalibrationSaver, load_calibration
from .exporter import create_app
from .sensors.averaged_lsm9ds1 import AveragedLSM9DS1
from .sensors.hts221 import HTS221
from .sensors.i2c import BusError, I2CDevice
from .sensors.lps25h import LPS25H
from .sensors.lsm9ds1 import LSM9DS1

logger = logging.getLogger(__name__)


@dataclass
class ExporterConfig:
    """Exporter configuration."""
    # Hardware
    device: str = "/dev/i2c-1"

    # HTTP
    host: str = "0.0.0.0"
    port: int = 9120

    # Mounting offsets (degrees)
    accel_offset_a: float = 0.0
    accel_offset_b: float = 0.0
    accel_offset_c: float = 0.0
    compass_offset: float = 0.0

    # Averaging
    window_s: float = 60.0
    interval_s: float = 0.5

    # Calibration storage
    calibration_file: str = "calibration.json"
    save_interval_s: float = 60.0


class Exporter:
    """
    Wires the sensors, background threads and HTTP app together.

    Sensor initialization errors are fatal; everything after start() keeps
    running through bus errors.
    """

    def __init__(self, config: Optional[ExporterConfig] = None):
        self.config = config or ExporterConfig()

        self._device: Optional[I2CDevice] = None
        self.hts221: Optional[HTS221] = None
        self.lps25h: Optional[LPS25H] = None
        self.lsm9ds1: Optional[AveragedLSM9DS1] = None
        self._saver: Optional[CalibrationSaver] = None

    def start(self, device=None):
        """
        Initialize sensors and start sampling and calibration saving.

        Args:
            device: Bus device to use instead of opening config.device

        Raises:
            BusError: the bus cannot be opened or a sensor cannot be initialized
        """
        cfg = self.config
        self._device = device if device is not None else I2CDevice(cfg.device)

        self.lps25h = LPS25H(self._device)
        self.hts221 = HTS221(self._device)

        cal = load_calibration(cfg.calibration_file)
        driver = LSM9DS1(self._device, cfg.compass_offset, cal)
        self.lsm9ds1 = AveragedLSM9DS1(
            driver, total=cfg.window_s, interval=cfg.interval_s,
            offsets=(cfg.accel_offset_a, cfg.accel_offset_b, cfg.accel_offset_c),
        )
        self.lsm9ds1.start()

        self._saver = CalibrationSaver(driver, cfg.calibration_file,
                                       interval=cfg.save_interval_s, initial=cal)
        self._saver.start()
        logger.info("Sensors started")

    def stop(self):
        """Stop background threads, save calibration and close the bus."""
        if self.lsm9ds1:
            self.lsm9ds1.stop()
        if self._saver:
            self._saver.stop()
        if self._device is not None:
            self._device.close()
            self._device = None
        logger.info("Sensors stopped")

    def app(self):
        return create_app(self.lsm9ds1, self.hts221, self.lps25h)


def parse_args(argv=None) -> ExporterConfig:
    parser = argparse.ArgumentParser(description="Sense HAT metrics exporter")
    parser.add_argument("--device", default="/dev/i2c-1",
                        help="I2C device (default: /dev/i2c-1)")
    parser.add_argument("--host", default="0.0.0.0",
                        help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, default=9120,
                        help="Metrics port (default: 9120)")
    parser.add_argument("--ao", type=float, default=0.0,
                        help="Accel A offset (degrees)")
    parser.add_argument("--bo", type=float, default=0.0,
                        help="Accel B offset (degrees)")
    parser.add_argument("--co", type=float, default=0.0,
                        help="Accel C offset (degrees)")
    parser.add_argument("--mo", type=float, default=0.0,
                        help="Magnetic compass offset (degrees)")
    parser.add_argument("--calibration-file", default="calibration.json",
                        help="Calibration file; .json for JSON, anything else for binary")
    parser.add_argument("--window", type=float, default=60.0,
                        help="Averaging window in seconds (default: 60)")
    parser.add_argument("--interval", type=float, default=0.5,
                        help="Sampling interval in seconds (default: 0.5)")
    parser.add_argument("--save-interval", type=float, default=60.0,
                        help="Calibration save check interval in seconds (default: 60)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Verbose logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    return ExporterConfig(
        device=args.device,
        host=args.host,
        port=args.port,
        accel_offset_a=args.ao,
        accel_offset_b=args.bo,
        accel_offset_c=args.co,
        compass_offset=args.mo,
        window_s=args.window,
        interval_s=args.interval,
        calibration_file=args.calibration_file,
        save_interval_s=args.save_interval,
    )


def main(argv=None):
    """Main entry point."""
    config = parse_args(argv)
    exporter = Exporter(config)

    try:
        exporter.start()
    except (BusError, ValueError) as e:
        logger.error(f"Failed to start sensors: {e}")
        exporter.stop()
        sys.exit(1)

    # Signal handler for graceful shutdown
    def signal_handler(sig, frame):
        logger.info("Shutdown signal received")
        exporter.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Serving metrics at http://{config.host}:{config.port}/metrics")
    try:
        exporter.app().run(host=config.host, port=config.port, threaded=True)
    finally:
        exporter.stop()


if __name__ == "__main__":
    main()
