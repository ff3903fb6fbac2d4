"""
Metrics Exporter
================

Flask server exposing Sense HAT readings as gauges for a metrics scraper.

Endpoints:
    GET /metrics          All gauges in the Prometheus text exposition format
    GET /api/gauges       All gauges as [{"name", "labels", "value"}, ...]
    GET /api/calibration  Current magnetometer calibration
    GET /api/status       Sampling statistics

Environment sensors are refreshed lazily on scrape (at most once a second);
the LSM9DS1 values come from the averaged view and never touch the bus.
"""

from typing import List, Optional, Tuple
import logging

from flask import Flask, Response, jsonify

from .sensors.averaged_lsm9ds1 import AveragedLSM9DS1
from .sensors.hts221 import HTS221
from .sensors.i2c import BusError
from .sensors.lps25h import LPS25H

logger = logging.getLogger(__name__)

NAMESPACE = "sensors"
ENV_MAX_AGE = 1.0   # seconds
PRECISION = 2
PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def dominant_axis_heading(accel: Tuple[int, int, int],
                          headings: Tuple[float, float, float]) -> float:
    """
    Pick the compass plane orthogonal to the axis gravity points along.

    Axes compare by magnitude so the board may be mounted either way up.
    Returns 0 when no axis strictly dominates.

    Args:
        accel: Median acceleration (x, y, z)
        headings: Compass headings (xy, xz, yz)
    """
    x, y, z = (abs(v) for v in accel)
    xy, xz, yz = headings
    if x > y and x > z:
        return yz
    if y > x and y > z:
        return xz
    if z > x and z > y:
        return xy
    return 0.0


def _refresh(sensor, name: str):
    try:
        sensor.refresh(ENV_MAX_AGE)
    except BusError as e:
        logger.warning(f"{name} refresh failed, serving last value: {e}")


def collect_gauges(lsm9ds1: AveragedLSM9DS1, hts221: Optional[HTS221] = None,
                   lps25h: Optional[LPS25H] = None) -> List[dict]:
    """Read every gauge once."""
    gauges: List[dict] = []

    def add(subsystem: str, name: str, value: float, **labels):
        gauges.append({
            "name": f"{NAMESPACE}_{subsystem}_{name}",
            "labels": labels,
            "value": round(float(value), PRECISION),
        })

    if hts221 is not None:
        _refresh(hts221, "HTS221")
        add("hts221", "humidity_percent", hts221.humidity())
        add("hts221", "temperature_celsius", hts221.temperature())

    if lps25h is not None:
        _refresh(lps25h, "LPS25H")
        add("lps25h", "pressure_mb", lps25h.pressure())
        add("lps25h", "temperature_celsius", lps25h.temperature())

    accel = lsm9ds1.acceleration()
    for direction, value in zip("xyz", accel):
        add("lsm9ds1", "accel_field", value, direction=direction)

    for plane, value in zip("abc", lsm9ds1.acceleration_angles()):
        add("lsm9ds1", "accel_angle_degrees", value, plane=plane)

    for plane, value in zip("abc", lsm9ds1.deviation()):
        add("lsm9ds1", "accel_deviation_degrees", value, plane=plane)

    headings = lsm9ds1.compass()
    for plane, value in zip("abc", headings):
        add("lsm9ds1", "compass_degrees", value, plane=plane)
    add("lsm9ds1", "compass_degrees", dominant_axis_heading(accel, headings), plane="s")

    for direction, value in zip("xyz", lsm9ds1.magnetic_field()):
        add("lsm9ds1", "compass_field", value, direction=direction)

    return gauges


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\n")


def format_prometheus(gauges: List[dict]) -> str:
    """
    Render gauges in the Prometheus text exposition format.

    Samples sharing a name are grouped under one ``# TYPE`` line, in the
    order the names first appear.
    """
    by_name = {}
    for g in gauges:
        by_name.setdefault(g["name"], []).append(g)

    lines = []
    for name, samples in by_name.items():
        lines.append(f"# TYPE {name} gauge")
        for g in samples:
            labels = ",".join(f'{k}="{_escape_label(str(v))}"'
                              for k, v in sorted(g["labels"].items()))
            series = f"{name}{{{labels}}}" if labels else name
            lines.append(f"{series} {g['value']}")
    return "\n".join(lines) + "\n"


def create_app(lsm9ds1: AveragedLSM9DS1, hts221: Optional[HTS221] = None,
               lps25h: Optional[LPS25H] = None) -> Flask:
    """Build the exporter app around already initialized sensors."""
    app = Flask(__name__)

    @app.route('/metrics')
    def metrics():
        """All gauges, freshly read, for a Prometheus scraper."""
        text = format_prometheus(collect_gauges(lsm9ds1, hts221, lps25h))
        return Response(text, content_type=PROMETHEUS_CONTENT_TYPE)

    @app.route('/api/gauges')
    def get_gauges():
        """All gauges as JSON."""
        return jsonify(collect_gauges(lsm9ds1, hts221, lps25h))

    @app.route('/api/calibration')
    def get_calibration():
        """Current magnetometer calibration."""
        return jsonify(lsm9ds1.calibration().to_dict())

    @app.route('/api/status')
    def get_status():
        """Sampling statistics and which sensors are present."""
        stats = lsm9ds1.stats
        return jsonify({
            "lsm9ds1": {
                "sample_count": stats["sample_count"],
                "error_count": stats["error_count"],
                "window_size": stats["window_size"],
                "window_capacity": stats["window_capacity"],
                "running": stats["running"],
            },
            "hts221": hts221 is not None,
            "lps25h": lps25h is not None,
        })

    return app
