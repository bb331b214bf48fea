# drivetest_AnalyticsReporter/core/reports.py
from __future__ import annotations
from pathlib import Path
from typing import Literal
import numpy as np
import pandas as pd
from scipy.io import savemat

from . import aggregate as agg
from .geo import dataset_center
from .model import records_to_frame

ReportFormat = Literal["csv", "mat", "both"]


def build_tables(records, technology: str = "All") -> dict[str, pd.DataFrame]:
    """Read-only views for presentation layers, for one technology selector."""
    df = agg.filter_technology(records, technology)
    daily = agg.by_day(df)
    k = agg.kpis(df)
    k["day_over_day_class1_change_pct"] = agg.day_over_day_change(daily)
    k["technology"] = technology
    k["center_lat"], k["center_lon"] = dataset_center(df)

    measurements = df.copy()
    measurements["timestamp"] = measurements["timestamp"].dt.strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        "measurements": measurements,
        "hourly": agg.by_hour(df),
        "daily": daily,
        "signal_classes": agg.signal_class_distribution(df),
        "technology": agg.technology_distribution(df),
        "per_class": agg.per_class_averages(df),
        "kpis": pd.DataFrame([k]),
    }


def _write_csv(df_out: pd.DataFrame, out_csv: Path, title: str) -> None:
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    df_out.to_csv(out_csv, index=False, encoding="utf-8")
    print(f"[OK] wrote report: {title} → {out_csv}")


def _to_mat_cellstr(seq: list[str]) -> np.ndarray:
    """Make a MATLAB column cell array from a list of strings."""
    seq2 = [("" if s is None else str(s)) for s in seq]
    arr = np.empty((len(seq2), 1), dtype=object)
    arr[:, 0] = seq2
    return arr


def _mat_struct(df_out: pd.DataFrame) -> dict:
    """Numerics become double (Nx1), everything else a cell array of strings (Nx1)."""
    out = {}
    for col in df_out.columns:
        s = df_out[col]
        if pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s):
            out[str(col)] = s.to_numpy(dtype=float).reshape(-1, 1)
        else:
            out[str(col)] = _to_mat_cellstr(s.astype(str).replace("nan", "", regex=False).tolist())
    return out


def _write_mat(tables: dict[str, pd.DataFrame], out_mat: Path, varname: str, title: str) -> None:
    """One MATLAB struct with a sub-struct per table."""
    out_mat.parent.mkdir(parents=True, exist_ok=True)
    savemat(out_mat, {varname: {name: _mat_struct(df) for name, df in tables.items()}})
    print(f"[OK] wrote report: {title} → {out_mat}")


def write_reports(records,
                  out_dir: Path,
                  title: str,
                  technology: str = "All",
                  fmt: ReportFormat = "csv",
                  mat_variable: str = "report") -> dict[str, pd.DataFrame]:
    """
    Write the aggregate views for one selector.
    - csv: one <table>.csv per view inside out_dir
    - mat: out_dir/report.mat holding all views under mat_variable
    """
    if records_to_frame(records).empty:
        return {}
    tables = build_tables(records, technology)

    if fmt in ("csv", "both"):
        for name, df_out in tables.items():
            _write_csv(df_out, out_dir / f"{name}.csv", f"{title} {name}")
    if fmt in ("mat", "both"):
        _write_mat(tables, out_dir / "report.mat", mat_variable, title)
    return tables


def write_answers(answers: list[tuple[str, str]], out_path: Path, title: str) -> None:
    if not answers:
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        for question, answer in answers:
            f.write(f"Q: {question}\n{answer}\n\n")
    print(f"[OK] wrote answers: {title} → {out_path}")
