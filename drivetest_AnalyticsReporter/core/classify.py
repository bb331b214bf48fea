# drivetest_AnalyticsReporter/core/classify.py
from __future__ import annotations
import logging
import math

# ----- defaults (used if configure_from_config isn't called) -----
DEFAULT_RSRP_DBM: float = -80.0
_DEFAULT_THRESHOLDS: tuple[float, float, float] = (-70.0, -85.0, -100.0)
_THRESHOLDS: tuple[float, float, float] = _DEFAULT_THRESHOLDS

SIGNAL_CLASS_LABELS: dict[int, str] = {
    1: "Excellent",
    2: "Good",
    3: "Fair",
    4: "Poor",
}

_LOG = logging.getLogger(__name__)


def configure_from_config(cfg: dict) -> None:
    """
    Optional: call once at startup to override the class thresholds from
    config.yaml (classification.thresholds: [class1_min, class2_min, class3_min]).
    """
    global _THRESHOLDS

    # reset to defaults each call so repeated invocations do not accumulate
    _THRESHOLDS = _DEFAULT_THRESHOLDS
    cls = (cfg or {}).get("classification", {}) if cfg else {}
    raw = (cls or {}).get("thresholds")
    if raw is None:
        return
    try:
        values = tuple(float(v) for v in raw)
    except (TypeError, ValueError):
        _LOG.warning("ignoring non-numeric classification thresholds %r", raw)
        return
    if len(values) != 3 or not (values[0] > values[1] > values[2]):
        _LOG.warning("ignoring classification thresholds %r (need 3 strictly decreasing values)", raw)
        return
    _THRESHOLDS = values
    _LOG.debug("classification thresholds set to %s", _THRESHOLDS)


def classify_rsrp(rsrp) -> int:
    """
    RSRP (dBm) -> signal class, first match wins:
      >= -70 -> 1, >= -85 -> 2, >= -100 -> 3, else 4.
    Missing / non-finite input is read as the -80 dBm default (class 2).
    """
    try:
        value = float(rsrp)
    except (TypeError, ValueError):
        value = DEFAULT_RSRP_DBM
    if not math.isfinite(value):
        value = DEFAULT_RSRP_DBM

    c1, c2, c3 = _THRESHOLDS
    if value >= c1:
        return 1
    if value >= c2:
        return 2
    if value >= c3:
        return 3
    return 4


def class_label(signal_class: int) -> str:
    return f"Class {signal_class} ({SIGNAL_CLASS_LABELS.get(signal_class, 'Unknown')})"
