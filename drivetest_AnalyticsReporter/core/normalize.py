# drivetest_AnalyticsReporter/core/normalize.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
import logging
import re
from typing import Callable, Sequence
import numpy as np
import pandas as pd

from .classify import classify_rsrp, DEFAULT_RSRP_DBM
from .errors import IngestionError
from .geo import DEFAULT_CENTER, fallback_coordinate
from .model import Dataset, FieldMapping, MeasurementRecord, RawTable

_LOG = logging.getLogger(__name__)

_EXTRA_TIME_FORMATS = ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S",
                       "%d.%m.%Y %H:%M:%S.%f", "%d.%m.%Y %H:%M:%S",
                       "%d/%m/%Y %H:%M:%S", "%d/%m/%Y %H:%M")
_EPOCH_MS_RE = re.compile(r"[+-]?\d+")
_FIVE_G_CUES = ("5g", "nr", "new")


@dataclass(frozen=True)
class NormalizeOptions:
    base_date: pd.Timestamp = pd.Timestamp("2025-08-01", tz="UTC")
    center: tuple[float, float] = DEFAULT_CENTER
    rsrp_default: float = DEFAULT_RSRP_DBM
    rsrq_default: float = -10.0
    sinr_default: float = 15.0
    throughput_low: float = 50.0     # Mbps, uniform [low, high) when missing
    throughput_high: float = 150.0
    seed: int | None = None

    @classmethod
    def from_config(cls, cfg: dict | None) -> "NormalizeOptions":
        sec = (cfg or {}).get("normalization", {}) or {}
        defaults = sec.get("defaults", {}) or {}
        kwargs = {}
        if sec.get("base_date"):
            kwargs["base_date"] = _to_utc(pd.Timestamp(str(sec["base_date"])))
        center = sec.get("center")
        if isinstance(center, (list, tuple)) and len(center) == 2:
            kwargs["center"] = (float(center[0]), float(center[1]))
        for name in ("rsrp", "rsrq", "sinr"):
            if defaults.get(name) is not None:
                kwargs[f"{name}_default"] = float(defaults[name])
        span = defaults.get("throughput_range")
        if isinstance(span, (list, tuple)) and len(span) == 2:
            kwargs["throughput_low"], kwargs["throughput_high"] = float(span[0]), float(span[1])
        if sec.get("seed") is not None:
            kwargs["seed"] = int(sec["seed"])
        return cls(**kwargs)


# ---------- column helpers ----------
def _to_utc(ts: pd.Timestamp) -> pd.Timestamp:
    return ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")


def parse_timestamp(value) -> pd.Timestamp:
    """One raw cell -> UTC Timestamp, NaT when it cannot be read. Naive values are taken as UTC."""
    if value is None or isinstance(value, bool):
        return pd.NaT
    try:
        if isinstance(value, (pd.Timestamp, datetime)):
            ts = pd.Timestamp(value)
        elif isinstance(value, (int, float, np.integer, np.floating)):
            if not np.isfinite(value):
                return pd.NaT
            ts = pd.to_datetime(value, unit="ms", errors="coerce")
        else:
            text = str(value).strip()
            if not text:
                return pd.NaT
            if _EPOCH_MS_RE.fullmatch(text):
                # digits only: epoch milliseconds, as for numeric cells
                ts = pd.to_datetime(int(text), unit="ms", errors="coerce")
            else:
                ts = pd.to_datetime(text, errors="coerce")
            if pd.isna(ts):
                for fmt in _EXTRA_TIME_FORMATS:
                    ts = pd.to_datetime(text, format=fmt, errors="coerce")
                    if not pd.isna(ts):
                        break
    except (TypeError, ValueError, OverflowError):
        return pd.NaT
    if pd.isna(ts):
        return pd.NaT
    return _to_utc(ts)


def to_abs_time(series: pd.Series | None, n: int) -> pd.Series:
    if series is None:
        return pd.Series([pd.NaT] * n, dtype="datetime64[ns, UTC]")
    return pd.Series([parse_timestamp(v) for v in series], dtype="datetime64[ns, UTC]")


def to_float(s: pd.Series | None, n: int) -> pd.Series:
    if s is None:
        return pd.Series(np.nan, index=range(n), dtype=float)
    if pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s):
        out = s.astype(float)
    else:
        text = s.astype(str).str.strip().str.replace(",", ".", regex=False)
        out = pd.to_numeric(text, errors="coerce").astype(float)
    return out.where(np.isfinite(out))


def to_text(s: pd.Series | None, n: int) -> pd.Series:
    if s is None:
        return pd.Series([""] * n, dtype=object)
    return s.apply(lambda v: "" if v is None or (isinstance(v, float) and np.isnan(v)) else str(v).strip())


# ---------- per-field default table ----------
DefaultFn = Callable[[NormalizeOptions, np.random.Generator, int], np.ndarray]

SIGNAL_FIELDS: tuple[tuple[str, Callable, DefaultFn], ...] = (
    ("rsrp",       to_float, lambda o, rng, n: np.full(n, o.rsrp_default)),
    ("rsrq",       to_float, lambda o, rng, n: np.full(n, o.rsrq_default)),
    ("sinr",       to_float, lambda o, rng, n: np.full(n, o.sinr_default)),
    ("throughput", to_float, lambda o, rng, n: o.throughput_low
                                               + rng.random(n) * (o.throughput_high - o.throughput_low)),
)


def _coordinates(lat_raw: pd.Series | None, lon_raw: pd.Series | None, n: int,
                 rng: np.random.Generator, center: tuple[float, float]) -> tuple[np.ndarray, np.ndarray]:
    lat = to_float(lat_raw, n).to_numpy(dtype=float, copy=True)
    lon = to_float(lon_raw, n).to_numpy(dtype=float, copy=True)
    if lat_raw is None or lon_raw is None:
        lat[:] = np.nan
        lon[:] = np.nan
    with np.errstate(invalid="ignore"):
        valid = (np.isfinite(lat) & np.isfinite(lon)
                 & (lat >= -90) & (lat <= 90) & (lon >= -180) & (lon <= 180)
                 & ~((lat == 0) & (lon == 0)))
    bad = np.nonzero(~valid)[0]
    for i in bad:
        lat[i], lon[i] = fallback_coordinate(int(i), rng, center)
    if bad.size:
        _LOG.debug("coordinates: %d of %d rows use the default center", bad.size, n)
    return lat, lon


def normalize_rows(rows: Sequence[dict],
                   mapping: FieldMapping,
                   *,
                   rng: np.random.Generator | None = None,
                   options: NormalizeOptions | None = None) -> list[MeasurementRecord]:
    """
    Raw rows + mapping -> one canonical MeasurementRecord per row, in input order.

    Missing, unmapped or unreadable cells are replaced by the documented
    defaults; no row is ever dropped. Raises IngestionError for an empty input.
    """
    rows = list(rows)
    if not rows:
        raise IngestionError("no rows to process")
    opts = options or NormalizeOptions()
    rng = rng if rng is not None else np.random.default_rng(opts.seed)
    m = mapping.frozen()

    raw = pd.DataFrame.from_records(rows)
    n = len(raw)
    idx = np.arange(n)

    def column(name: str) -> pd.Series | None:
        col = m.get(name)
        if col and col in raw.columns:
            return raw[col].reset_index(drop=True)
        return None

    # timestamp, synthesized as base + i//24 days + i%24 hours when unreadable
    ts = to_abs_time(column("timestamp"), n)
    fallback_ts = pd.Series(opts.base_date
                            + pd.to_timedelta(idx // 24, unit="D")
                            + pd.to_timedelta(idx % 24, unit="h"))
    n_bad_ts = int(ts.isna().sum())
    ts = ts.where(ts.notna(), fallback_ts)
    if n_bad_ts:
        _LOG.debug("timestamp: %d of %d rows synthesized", n_bad_ts, n)

    values: dict[str, np.ndarray] = {}
    for name, parser, default in SIGNAL_FIELDS:
        parsed = parser(column(name), n).to_numpy(dtype=float)
        missing = ~np.isfinite(parsed)
        if missing.any():
            parsed = np.where(missing, default(opts, rng, n), parsed)
            _LOG.debug("%s: %d of %d rows defaulted", name, int(missing.sum()), n)
        values[name] = np.round(parsed, 1)

    tech_text = to_text(column("technology"), n).str.lower()
    is_5g = tech_text.apply(lambda t: any(c in t for c in _FIVE_G_CUES)).to_numpy(dtype=bool)

    loc_text = to_text(column("location"), n).tolist()
    locations = [loc if loc else f"Sector_{i // 24 + 1}" for i, loc in enumerate(loc_text)]

    lat, lon = _coordinates(column("latitude"), column("longitude"), n, rng, opts.center)

    records = []
    for i in range(n):
        rsrp = float(values["rsrp"][i])
        records.append(MeasurementRecord(
            timestamp=ts.iloc[i].to_pydatetime(),
            rsrp=rsrp,
            rsrq=float(values["rsrq"][i]),
            sinr=float(values["sinr"][i]),
            signal_class=classify_rsrp(rsrp),
            technology="5G" if is_5g[i] else "4G",
            location=locations[i],
            throughput=float(values["throughput"][i]),
            lat=float(lat[i]),
            lon=float(lon[i]),
            source_row_index=i,
        ))
    return records


def build_dataset(table: RawTable,
                  mapping: FieldMapping,
                  *,
                  rng: np.random.Generator | None = None,
                  options: NormalizeOptions | None = None) -> Dataset:
    if not table.headers:
        raise IngestionError(f"{table.name}: no header row")
    applied = mapping.frozen()
    records = normalize_rows(table.rows, applied, rng=rng, options=options)
    _LOG.info("%s: normalized %d rows", table.name, len(records))
    return Dataset(records=tuple(records), columns=tuple(table.headers),
                   mapping=applied, source=table.name)
