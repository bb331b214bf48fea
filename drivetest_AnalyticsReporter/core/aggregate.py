# drivetest_AnalyticsReporter/core/aggregate.py
from __future__ import annotations
import calendar
import math
import numpy as np
import pandas as pd

from .classify import class_label
from .model import records_to_frame, TECHNOLOGIES

_BUCKET_COLS = ["count", "class1_count", "class1_pct", "avg_rsrp",
                "avg_throughput_mbps", "avg_throughput_kbps"]


def _finite(df: pd.DataFrame, field: str) -> np.ndarray:
    if df.empty or field not in df.columns:
        return np.array([], dtype=float)
    vals = pd.to_numeric(df[field], errors="coerce").to_numpy(dtype=float)
    return vals[np.isfinite(vals)]


def mean(records, field: str) -> float:
    """Arithmetic mean over finite values; 0.0 for empty input."""
    vals = _finite(records_to_frame(records), field)
    return float(vals.mean()) if vals.size else 0.0


def percentile(records, field: str, p: float) -> float:
    """
    Nearest-rank percentile (no interpolation) over finite values:
    index = round(p/100 * (n-1)) clamped to [0, n-1]. 0.0 for empty input.
    """
    vals = np.sort(_finite(records_to_frame(records), field))
    if not vals.size:
        return 0.0
    idx = int(math.floor((float(p) / 100.0) * (vals.size - 1) + 0.5))
    idx = min(vals.size - 1, max(0, idx))
    return float(vals[idx])


def filter_technology(records, technology: str | None) -> pd.DataFrame:
    """External selector: "All" (or empty) keeps everything, otherwise "4G"/"5G"."""
    df = records_to_frame(records)
    if not technology or str(technology).lower() == "all":
        return df
    return df[df["technology"] == str(technology).upper()]


def _bucket(df: pd.DataFrame, key: str, index) -> pd.DataFrame:
    index = pd.Index(list(index), name=key)
    if df.empty:
        out = pd.DataFrame(0.0, index=index, columns=_BUCKET_COLS)
    else:
        work = df.assign(is_class1=(df["signal_class"] == 1).astype(int))
        out = work.groupby(key).agg(
            count=("rsrp", "size"),
            class1_count=("is_class1", "sum"),
            avg_rsrp=("rsrp", "mean"),
            avg_throughput_mbps=("throughput", "mean"),
        ).reindex(index).fillna(0.0)
        out["class1_pct"] = np.where(out["count"] > 0,
                                     out["class1_count"] / out["count"].where(out["count"] > 0, 1) * 100.0,
                                     0.0)
        out["avg_throughput_kbps"] = out["avg_throughput_mbps"] * 1000.0
        out = out[_BUCKET_COLS]
    out["count"] = out["count"].astype(int)
    out["class1_count"] = out["class1_count"].astype(int)
    return out.reset_index()


def by_hour(records) -> pd.DataFrame:
    """24 rows (hour 0..23); hours without rows report zeros."""
    out = _bucket(records_to_frame(records), "hour", range(24))
    out.insert(1, "label", [f"{h}:00" for h in out["hour"]])
    return out


def by_day(records) -> pd.DataFrame:
    """31 rows (day 1..31) with the hourly metrics plus the raw class-1/total counts."""
    df = records_to_frame(records)
    out = _bucket(df, "day", range(1, 32))
    month = "Aug"
    if not df.empty:
        month = calendar.month_abbr[int(df["timestamp"].dt.month.mode().iloc[0])]
    out.insert(1, "label", [f"{month} {d}" for d in out["day"]])
    out["total_measurements"] = out["count"]
    return out


def by_category(records, key: str, field: str = "throughput") -> pd.DataFrame:
    """
    Group by any record column (technology, signal_class, location, ...):
    one row per category value in first-seen order with its count and mean(field).
    """
    df = records_to_frame(records)
    if df.empty or key not in df.columns:
        return pd.DataFrame({key: [], "count": [], "mean": []}).astype({"count": int, "mean": float})
    vals = pd.to_numeric(df[field], errors="coerce")
    vals = vals.where(np.isfinite(vals))
    keys = df[key].where(df[key].notna(), "Unknown")
    grouped = vals.groupby(keys, sort=False)
    out = pd.DataFrame({"count": grouped.size(), "mean": grouped.mean().fillna(0.0)})
    out.index.name = key
    return out.reset_index()


def signal_class_distribution(records) -> pd.DataFrame:
    df = records_to_frame(records)
    counts = df["signal_class"].value_counts() if not df.empty else pd.Series(dtype=int)
    return pd.DataFrame({
        "signal_class": [1, 2, 3, 4],
        "name": [class_label(c) for c in (1, 2, 3, 4)],
        "value": [int(counts.get(c, 0)) for c in (1, 2, 3, 4)],
    })


def technology_distribution(records) -> pd.DataFrame:
    df = records_to_frame(records)
    counts = df["technology"].value_counts() if not df.empty else pd.Series(dtype=int)
    return pd.DataFrame({
        "technology": list(TECHNOLOGIES),
        "value": [int(counts.get(t, 0)) for t in TECHNOLOGIES],
    })


def per_class_averages(records) -> pd.DataFrame:
    """Count, mean RSRP and mean throughput (kbps) per signal class; NaN where a class is empty."""
    df = records_to_frame(records)
    rows = []
    for cls in (1, 2, 3, 4):
        sub = df[df["signal_class"] == cls]
        n = int(len(sub))
        rows.append({
            "signal_class": cls,
            "count": n,
            "avg_rsrp": round(mean(sub, "rsrp"), 1) if n else np.nan,
            "avg_throughput_kbps": math.floor(mean(sub, "throughput") * 1000.0 + 0.5) if n else np.nan,
        })
    return pd.DataFrame(rows)


def kpis(records) -> dict:
    df = records_to_frame(records)
    total = int(len(df))
    c1 = int((df["signal_class"] == 1).sum()) if total else 0
    return {
        "total_measurements": total,
        "class1_count": c1,
        "class1_pct": round(c1 / total * 100.0, 1) if total else 0.0,
        "avg_rsrp_dbm": round(mean(df, "rsrp"), 1),
        "avg_throughput_mbps": mean(df, "throughput"),
        "avg_throughput_kbps": mean(df, "throughput") * 1000.0,
    }


def day_over_day_change(daily: pd.DataFrame) -> float:
    """Relative change (%) of class-1 share between the last two daily buckets."""
    if daily is None or len(daily) < 2:
        return 0.0
    last = float(daily["class1_pct"].iloc[-1] or 0.0)
    prev = float(daily["class1_pct"].iloc[-2] or 0.0)
    if prev == 0:
        return 0.0 if last == 0 else 100.0
    return round((last - prev) / abs(prev) * 100.0, 1)
