#!/usr/bin/env python3
"""
LSM9DS1 Calibration Script
==========================

Interactive magnetometer calibration for the Sense HAT.

Rotate the board slowly through every orientation while this runs. Each
sample is printed as a CSV row; the calibration is saved at most once a
second whenever it widened.

Usage:
    python scripts/lsm9ds1_calibrate.py

    # Custom file and duration
    python scripts/lsm9ds1_calibrate.py --save calibration.json --duration 120
"""

import argparse
import sys
import time
import signal

try:
    from boatpi.calibration_store import save_calibration
    from boatpi.sensors import I2CDevice, LSM9DS1, Calibration, BusError, HAS_SMBUS
except ImportError as e:
    print(f"ERROR: Cannot import boatpi: {e}")
    print("Install the project first: pip install -e .")
    sys.exit(1)

if not HAS_SMBUS:
    print("ERROR: smbus2 not installed. Run: pip install smbus2")
    sys.exit(1)


# Global flag for clean shutdown
running = True

CSV_HEADER = "mx,my,mz,xy,xz,yz,max_x,min_x,max_y,min_y,max_z,min_z"


def signal_handler(sig, frame):
    """Handle Ctrl+C gracefully."""
    global running
    running = False
    print("\n\nCalibration stopped.")


def main():
    parser = argparse.ArgumentParser(description="Calibrate the LSM9DS1 magnetometer")
    parser.add_argument("--device", "-d", default="/dev/i2c-1",
                        help="I2C device (default: /dev/i2c-1)")
    parser.add_argument("--duration", "-t", type=float, default=60.0,
                        help="Calibration duration in seconds (default: 60)")
    parser.add_argument("--save", "-s", default="calibration.json",
                        help="Calibration file (default: calibration.json)")

    args = parser.parse_args()

    signal.signal(signal.SIGINT, signal_handler)

    try:
        device = I2CDevice(args.device)
        lsm9ds1 = LSM9DS1(device, 0.0, Calibration())
    except BusError as e:
        print(f"ERROR: init LSM9DS1: {e}")
        sys.exit(1)

    print(CSV_HEADER)

    t0 = time.time()
    saved_at = time.time()
    saved = Calibration()

    while running and time.time() - t0 < args.duration:
        try:
            lsm9ds1.refresh(0.05)
        except BusError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            break

        mx, my, mz = lsm9ds1.magnetic_field()
        xy, xz, yz = lsm9ds1.compass()
        cal = lsm9ds1.calibration()
        print(f"{mx:6d},{my:6d},{mz:6d},{xy:4.0f},{xz:4.0f},{yz:4.0f},"
              f"{cal.max_x:6d},{cal.min_x:6d},{cal.max_y:6d},{cal.min_y:6d},"
              f"{cal.max_z:6d},{cal.min_z:6d}")

        if cal != saved and time.time() - saved_at > 1.0:
            if save_calibration(args.save, cal):
                saved = cal
                saved_at = time.time()
                print("Saved calibration", file=sys.stderr)

        time.sleep(0.15)

    cal = lsm9ds1.calibration()
    if cal != saved:
        save_calibration(args.save, cal)
    device.close()


if __name__ == "__main__":
    main()
