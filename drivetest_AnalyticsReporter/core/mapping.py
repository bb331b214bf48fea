# drivetest_AnalyticsReporter/core/mapping.py
from __future__ import annotations
import logging
from typing import Sequence

from .model import FieldMapping

_LOG = logging.getLogger(__name__)

LAT_PATTERNS: tuple[str, ...] = (
    "lat", "latitude", "Lat", "Latitude", "LAT", "LATITUDE",
    "lat_deg", "latitude_deg", "lat_decimal", "latitude_decimal",
)
LON_PATTERNS: tuple[str, ...] = (
    "lng", "lon", "long", "longitude", "Lng", "Lon", "Long",
    "Longitude", "LNG", "LON", "LONG", "LONGITUDE",
    "lng_deg", "lon_deg", "longitude_deg", "long_decimal",
)


def _has_any(text: str, *cues: str) -> bool:
    return any(c in text for c in cues)


# (canonical field, predicate on the lower-cased header); header order decides ties
_FIELD_CUES = (
    ("timestamp",  lambda h: _has_any(h, "time", "date", "timestamp")),
    ("rsrp",       lambda h: "rsrp" in h or ("signal" in h and "strength" in h)),
    ("rsrq",       lambda h: _has_any(h, "rsrq", "quality")),
    ("sinr",       lambda h: _has_any(h, "sinr", "snr")),
    ("technology", lambda h: _has_any(h, "tech", "rat", "generation", "technology")),
    ("location",   lambda h: _has_any(h, "location", "sector", "cell", "site")),
    ("throughput", lambda h: _has_any(h, "throughput", "speed", "rate", "kbps", "mbps")),
)


def detect_coordinate_columns(headers: Sequence[str]) -> tuple[str | None, str | None]:
    """First pattern (not best match) present in the headers, per axis."""
    present = set(headers)
    lat_col = next((p for p in LAT_PATTERNS if p in present), None)
    lon_col = next((p for p in LON_PATTERNS if p in present), None)
    return lat_col, lon_col


def propose_mapping(headers: Sequence[str]) -> FieldMapping:
    """
    Heuristic canonical -> source column proposal. The caller may edit the
    result (FieldMapping.override) before normalizing.
    """
    headers = [str(h).strip() for h in headers]
    mapping = FieldMapping()

    lat_col, lon_col = detect_coordinate_columns(headers)
    if lat_col:
        mapping.latitude = lat_col
    if lon_col:
        mapping.longitude = lon_col

    for h in headers:
        lower = h.lower()
        for name, matches in _FIELD_CUES:
            if not mapping.get(name) and matches(lower):
                setattr(mapping, name, h)

    _LOG.info("proposed mapping: %s", mapping.mapped())
    if lat_col and lon_col:
        _LOG.info("coordinates detected: %s & %s", lat_col, lon_col)
    else:
        _LOG.warning("no coordinate columns detected; default locations will be used")
    return mapping
