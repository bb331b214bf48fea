# drivetest_AnalyticsReporter/core/model.py
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from datetime import datetime
from functools import cached_property
from pathlib import Path
import pandas as pd

CANONICAL_FIELDS: tuple[str, ...] = (
    "timestamp", "rsrp", "rsrq", "sinr", "technology",
    "location", "throughput", "latitude", "longitude",
)

# column order of the canonical record view (also what the schema question lists)
RECORD_COLUMNS: tuple[str, ...] = (
    "timestamp", "date", "hour", "day", "rsrp", "rsrq", "sinr", "signal_class",
    "technology", "location", "throughput", "lat", "lon", "source_row_index",
)

TECHNOLOGIES: tuple[str, ...] = ("5G", "4G")


@dataclass(frozen=True)
class MeasurementRecord:
    timestamp: datetime       # tz-aware, UTC
    rsrp: float               # dBm
    rsrq: float               # dB
    sinr: float               # dB
    signal_class: int         # 1 (best) .. 4
    technology: str           # "4G" | "5G"
    location: str
    throughput: float         # Mbps; kbps only when presenting
    lat: float
    lon: float
    source_row_index: int

    @property
    def hour(self) -> int:
        return self.timestamp.hour

    @property
    def day(self) -> int:
        return self.timestamp.day

    @property
    def date(self) -> str:
        return self.timestamp.strftime("%a %b %d %Y")

    def as_row(self) -> dict:
        return {name: getattr(self, name) for name in RECORD_COLUMNS}


@dataclass
class FieldMapping:
    """Canonical field -> source column name ("" when unmapped)."""
    timestamp: str = ""
    rsrp: str = ""
    rsrq: str = ""
    sinr: str = ""
    technology: str = ""
    location: str = ""
    throughput: str = ""
    latitude: str = ""
    longitude: str = ""

    def get(self, name: str) -> str:
        return getattr(self, name, "") or ""

    def override(self, values: dict | None) -> "FieldMapping":
        """Apply caller edits in place; unknown keys are ignored, None clears a field."""
        for name, col in (values or {}).items():
            if name in CANONICAL_FIELDS:
                setattr(self, name, "" if col is None else str(col).strip())
        return self

    def mapped(self) -> dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v}

    def frozen(self) -> "FieldMapping":
        return FieldMapping(**asdict(self))


@dataclass(frozen=True)
class RawTable:
    name: str                   # label used for output folders
    headers: tuple[str, ...]
    rows: list[dict]
    source_path: Path


@dataclass(frozen=True)
class Dataset:
    records: tuple[MeasurementRecord, ...]
    columns: tuple[str, ...] = ()          # source headers as read
    mapping: FieldMapping = field(default_factory=FieldMapping)
    source: str = ""

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    @cached_property
    def frame(self) -> pd.DataFrame:
        return records_to_frame(self.records)


def records_to_frame(records) -> pd.DataFrame:
    """Canonical DataFrame view; always carries RECORD_COLUMNS, even when empty."""
    if isinstance(records, Dataset):
        return records.frame
    if isinstance(records, pd.DataFrame):
        return records
    df = pd.DataFrame([r.as_row() for r in records], columns=list(RECORD_COLUMNS))
    for c in ("rsrp", "rsrq", "sinr", "throughput", "lat", "lon"):
        df[c] = pd.to_numeric(df[c], errors="coerce").astype(float)
    for c in ("hour", "day", "signal_class", "source_row_index"):
        df[c] = pd.to_numeric(df[c], errors="coerce").fillna(0).astype(int)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return df
