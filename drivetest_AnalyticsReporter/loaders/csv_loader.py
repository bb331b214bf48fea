# drivetest_AnalyticsReporter/loaders/csv_loader.py
from __future__ import annotations
from pathlib import Path
import zipfile, io, logging
import pandas as pd

from ..core.errors import IngestionError
from ..core.model import RawTable

_LOG = logging.getLogger(__name__)


def table_name_from_path(path: Path, member: str | None = None) -> str:
    """Label used for the per-input output folder."""
    if member:
        return f"{path.stem}__{Path(member).stem}"
    return path.stem


# ---------- CSV reading ----------
def _table_from_csv_bytes(buff: bytes, name: str, source_path: Path) -> RawTable:
    """
    Header row + rows as dicts of raw text. Cells are kept as strings
    (empty string for blanks); the normalizer decides what is usable.
    """
    text = buff.decode("utf-8-sig", errors="replace")
    try:
        df = pd.read_csv(io.StringIO(text), sep=",", dtype=str, keep_default_na=False,
                         skip_blank_lines=True, low_memory=False)
    except pd.errors.EmptyDataError as e:
        raise IngestionError(f"{name}: no header/rows found") from e
    except pd.errors.ParserError as e:
        raise IngestionError(f"{name}: unreadable CSV ({e})") from e

    df.columns = [str(c).strip() for c in df.columns]
    # rows that are blank in every column carry no measurement
    df = df[~(df.apply(lambda col: col.str.strip() == "")).all(axis=1)]
    if df.empty:
        raise IngestionError(f"{name}: no data rows found")
    _LOG.info("%s: read %d rows, %d columns", name, len(df), len(df.columns))
    return RawTable(name=name, headers=tuple(df.columns), rows=df.to_dict("records"),
                    source_path=source_path)


def read_csv_text(text: str, name: str = "inline") -> RawTable:
    """Convenience for callers (and tests) that already hold the CSV text."""
    return _table_from_csv_bytes(text.encode("utf-8"), name, Path(name))


# ---------- public loader ----------
def load(path: Path) -> list[RawTable]:
    """
    Accepts: a loose .csv file, or a .zip with CSV members.
    Returns: one RawTable per CSV. A loose CSV that cannot be read raises
    IngestionError; unreadable zip members are skipped with a warning.
    """
    if path.suffix.lower() == ".csv":
        return [_table_from_csv_bytes(path.read_bytes(), table_name_from_path(path), path)]

    tables: list[RawTable] = []
    with zipfile.ZipFile(path, "r") as zf:
        members = [m for m in zf.namelist() if m.lower().endswith(".csv")]
        for member in members:
            name = table_name_from_path(path, member)
            try:
                tables.append(_table_from_csv_bytes(zf.read(member), name, path))
            except IngestionError as e:
                _LOG.warning("skipping %s: %s", member, e)
    if not tables:
        raise IngestionError(f"{path.name}: no readable CSV members")
    return tables
