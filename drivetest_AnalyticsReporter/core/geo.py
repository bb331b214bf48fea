# drivetest_AnalyticsReporter/core/geo.py
from __future__ import annotations
import math
import numpy as np
import pandas as pd

from .model import records_to_frame

# Johannesburg; used when a row carries no usable coordinates
DEFAULT_CENTER: tuple[float, float] = (-26.2041, 28.0473)
LAT_JITTER_SPAN = 0.05
LON_JITTER_SPAN = 0.07


def _as_float(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, str):
            value = value.strip().replace(",", ".")
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def is_valid_coordinate(lat, lon) -> bool:
    """
    True when both values are finite numbers inside geographic bounds and the
    pair is not the (0, 0) "unset" sentinel many feeds emit.
    """
    la, lo = _as_float(lat), _as_float(lon)
    if la is None or lo is None:
        return False
    if not (-90.0 <= la <= 90.0 and -180.0 <= lo <= 180.0):
        return False
    return not (la == 0.0 and lo == 0.0)


def fallback_coordinate(index: int,
                        rng: np.random.Generator,
                        center: tuple[float, float] = DEFAULT_CENTER) -> tuple[float, float]:
    """Default center + random jitter + a per-row term that spreads consecutive rows."""
    lat0, lon0 = center
    jitter_a = (index % 100) / 1000.0
    jitter_b = ((index * 7) % 100) / 1000.0
    lat = lat0 + (rng.random() - 0.5) * LAT_JITTER_SPAN + jitter_a
    lon = lon0 + (rng.random() - 0.5) * LON_JITTER_SPAN + jitter_b
    if not is_valid_coordinate(lat, lon):
        # only reachable with a center configured at the edge of the globe
        lat = min(90.0, max(-90.0, lat))
        lon = min(180.0, max(-180.0, lon))
        if lat == 0.0 and lon == 0.0:
            lat = 1e-6
    return float(lat), float(lon)


def dataset_center(records, default: tuple[float, float] = DEFAULT_CENTER) -> tuple[float, float]:
    """Mean position of rows that carry real coordinates (not the raw default center)."""
    df = records_to_frame(records)
    if df.empty:
        return default
    lat = pd.to_numeric(df["lat"], errors="coerce").to_numpy(dtype=float)
    lon = pd.to_numeric(df["lon"], errors="coerce").to_numpy(dtype=float)
    keep = (np.isfinite(lat) & np.isfinite(lon)
            & (np.abs(lat) <= 90) & (np.abs(lon) <= 180)
            & ~((lat == 0) & (lon == 0))
            & (lat != default[0]) & (lon != default[1]))
    if not keep.any():
        return default
    return float(lat[keep].mean()), float(lon[keep].mean())
