#!/usr/bin/env python3
"""
Sense HAT Environment Logger
============================

Print one JSON object per interval with pressure, humidity and temperatures.

Usage:
    python scripts/sensehat_log.py

    # Every 10 seconds, 1 decimal
    python scripts/sensehat_log.py --interval 10 --decimals 1
"""

import argparse
import json
import sys
import time
import signal
from datetime import datetime

try:
    from boatpi.sensors import I2CDevice, HTS221, LPS25H, BusError, HAS_SMBUS
except ImportError as e:
    print(f"ERROR: Cannot import boatpi: {e}")
    print("Install the project first: pip install -e .")
    sys.exit(1)

if not HAS_SMBUS:
    print("ERROR: smbus2 not installed. Run: pip install smbus2")
    sys.exit(1)


running = True


def signal_handler(sig, frame):
    global running
    running = False


def main():
    parser = argparse.ArgumentParser(description="Log Sense HAT environment sensors as JSON lines")
    parser.add_argument("--device", "-d", default="/dev/i2c-1",
                        help="I2C device (default: /dev/i2c-1)")
    parser.add_argument("--interval", "-i", type=float, default=1.0,
                        help="Interval between measurements in seconds (default: 1)")
    parser.add_argument("--decimals", type=int, default=2,
                        help="Rounding precision (default: 2)")
    parser.add_argument("--buffer", action="store_true",
                        help="Use output buffering")

    args = parser.parse_args()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        device = I2CDevice(args.device)
        lps25h = LPS25H(device)
        hts221 = HTS221(device)
    except BusError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    next_update = time.time()
    while running:
        try:
            lps25h.refresh(0)
            hts221.refresh(0)
        except BusError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            sys.exit(1)

        fields = {
            "when": datetime.now().astimezone().isoformat(),
            "lps25h_pressure_hpa": round(lps25h.pressure(), args.decimals),
            "lps25h_temperature_c": round(lps25h.temperature(), args.decimals),
            "hts221_humidity_rh": round(hts221.humidity(), args.decimals),
            "hts221_temperature_c": round(hts221.temperature(), args.decimals),
        }
        print(json.dumps(fields), flush=not args.buffer)

        next_update += args.interval
        time.sleep(max(0.0, next_update - time.time()))

    sys.stdout.flush()
    device.close()


if __name__ == "__main__":
    main()
