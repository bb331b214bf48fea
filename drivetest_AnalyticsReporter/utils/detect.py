# drivetest_AnalyticsReporter/utils/detect.py
from __future__ import annotations
from pathlib import Path
import zipfile
from dataclasses import dataclass
from typing import Literal

InputKind = Literal["csvzip", "csv", "unknown"]


@dataclass(frozen=True)
class DetectedItem:
    path: Path
    kind: InputKind
    members: tuple[str, ...] = ()   # CSV tables the input holds (zip member names or the file name)

    @property
    def table_count(self) -> int:
        return len(self.members)


def csv_members(p: Path) -> tuple[str, ...]:
    """Names of the .csv members of a zip archive; empty when p is not a readable zip."""
    if not p.is_file():
        return ()
    try:
        if not zipfile.is_zipfile(p):
            return ()
        with zipfile.ZipFile(p, "r") as zf:
            return tuple(n for n in zf.namelist() if n.lower().endswith(".csv"))
    except (OSError, zipfile.BadZipFile):
        return ()


def inspect_input(p: Path) -> DetectedItem:
    """
    .csv                      -> 'csv' with the file itself as the only table
    .zip with .csv member(s)  -> 'csvzip' with the member names
    anything else             -> 'unknown'
    """
    suffix = p.suffix.lower()
    if suffix == ".csv":
        return DetectedItem(p.resolve(), "csv", (p.name,))
    if suffix == ".zip":
        members = csv_members(p)
        if members:
            return DetectedItem(p.resolve(), "csvzip", members)
    return DetectedItem(p.resolve(), "unknown")


def discover_inputs(root: Path, recurse: bool = True) -> list[DetectedItem]:
    """A single file, or every CSV / zip-of-CSV under a folder, in (kind, path) order."""
    candidates = [root] if root.is_file() else (root.rglob("*") if recurse else root.glob("*"))
    items = [inspect_input(p) for p in candidates if p.is_file()]
    items = [it for it in items if it.kind != "unknown"]
    items.sort(key=lambda x: (x.kind, str(x.path)))
    return items
