# drivetest_AnalyticsReporter/core/query.py
"""
Local, rule-based question answering over a normalized dataset.

One pass per question: extract filters (technology, hour, day) from the text,
narrow the dataset, then walk an ordered list of intents and let the first
matching one format the answer. Nothing here raises for a malformed question;
the worst case is the summary answer.
"""
from __future__ import annotations
from dataclasses import dataclass
import logging
import math
import re
from typing import Callable, NamedTuple
import pandas as pd

from . import aggregate as agg
from .model import Dataset, RECORD_COLUMNS, records_to_frame

_LOG = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "No matching rows for those filters. Try a broader question."

DEFAULT_TOP_N = 5
DEFAULT_PERCENTILE = 95

_HOUR_RANGE_RE = re.compile(r"between\s+(\d{1,2})\s*(?:and|-|to)\s*(\d{1,2})")
_AT_HOUR_RE = re.compile(r"\b(?:hour|at)\s*(\d{1,2})\b")
_DAY_RE = re.compile(r"\baug(?:ust)?\s*(\d{1,2})\b")
_LTE_RE = re.compile(r"\blte\b")
_TOP_RE = re.compile(r"top\s*(\d+)?\s*sectors?.*throughput")
_BOTTOM_RE = re.compile(r"bottom\s*(\d+)?\s*sectors?.*throughput")
_PERCENTILE_RE = re.compile(r"(?<!\d)(\d+)\s*(?:st|nd|rd|th)?\s*percentile")


# ---------- formatting ----------
def clamp_int(value, lo: int, hi: int, default: int | None = None) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = lo if default is None else default
    return max(lo, min(hi, n))


def fmt_count(n: int) -> str:
    return f"{int(n):,}"


def fmt_pct(x: float) -> str:
    return f"{float(x or 0.0):.1f}%"


def fmt_kbps(mbps: float) -> str:
    return f"{math.floor(float(mbps or 0.0) * 1000.0 + 0.5):.0f} kbps"


def _plural(n: int, word: str) -> str:
    return word if n == 1 else f"{word}s"


# ---------- filters ----------
@dataclass(frozen=True)
class QueryFilters:
    technology: str | None = None
    hour_range: tuple[int, int] | None = None
    day: int | None = None

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        out = df
        if self.technology:
            out = out[out["technology"] == self.technology]
        if self.hour_range is not None:
            lo, hi = self.hour_range
            out = out[(out["hour"] >= lo) & (out["hour"] <= hi)]
        if self.day is not None:
            out = out[out["day"] == self.day]
        return out


def parse_filters(question: str, technology: str | None = "All") -> QueryFilters:
    """Technology cue in the text beats the external selector; an hour range beats a single hour."""
    q = (question or "").lower()

    tech = None
    if "5g" in q or " nr" in q:
        tech = "5G"
    elif "4g" in q or _LTE_RE.search(q):
        tech = "4G"
    elif technology and str(technology).lower() != "all":
        tech = str(technology).upper()

    hours = None
    m = _HOUR_RANGE_RE.search(q)
    if m:
        h1, h2 = clamp_int(m.group(1), 0, 23), clamp_int(m.group(2), 0, 23)
        hours = (min(h1, h2), max(h1, h2))
    else:
        m = _AT_HOUR_RE.search(q)
        if m:
            h = clamp_int(m.group(1), 0, 23)
            hours = (h, h)

    day = None
    m = _DAY_RE.search(q)
    if m:
        day = clamp_int(m.group(1), 1, 31)

    return QueryFilters(technology=tech, hour_range=hours, day=day)


# ---------- intents ----------
@dataclass(frozen=True)
class QueryContext:
    question: str             # lower-cased
    subset: pd.DataFrame      # filtered, never empty
    columns: tuple[str, ...]  # canonical record columns of the dataset


class Intent(NamedTuple):
    name: str
    matches: Callable[[str], bool]
    handle: Callable[[QueryContext], str]


def _has(q: str, *cues: str) -> bool:
    return any(c in q for c in cues)


def _schema(ctx: QueryContext) -> str:
    cols = ", ".join(ctx.columns) if ctx.columns else "No columns detected."
    return f"Detected columns: {cols}"


def _count(ctx: QueryContext) -> str:
    return f"There are {fmt_count(len(ctx.subset))} measurements in this selection."


def _avg_throughput(ctx: QueryContext) -> str:
    mbps = agg.mean(ctx.subset, "throughput")
    n = len(ctx.subset)
    return (f"Average throughput: {fmt_kbps(mbps)} (≈ {mbps:.1f} Mbps) "
            f"based on {fmt_count(n)} {_plural(n, 'measurement')}.")


def _avg_field(field: str, label: str, unit: str) -> Callable[[QueryContext], str]:
    def handle(ctx: QueryContext) -> str:
        return f"Average {label}: {agg.mean(ctx.subset, field):.1f} {unit}."
    return handle


def _class1_share(ctx: QueryContext) -> str:
    n = len(ctx.subset)
    c1 = int((ctx.subset["signal_class"] == 1).sum())
    return f"Class 1 coverage: {fmt_pct(c1 / n * 100.0)} ({fmt_count(c1)} of {fmt_count(n)})."


def _ranked_sectors(pattern: re.Pattern, title: str, descending: bool) -> Callable[[QueryContext], str]:
    def handle(ctx: QueryContext) -> str:
        m = pattern.search(ctx.question)
        k = clamp_int(m.group(1) if m and m.group(1) else DEFAULT_TOP_N, 1, 50, DEFAULT_TOP_N)
        ranked = (agg.by_category(ctx.subset, "location", "throughput")
                  .sort_values("mean", ascending=not descending, kind="mergesort")
                  .head(k))
        lines = [f"{title} {len(ranked)} sectors by avg throughput:"]
        for i, row in enumerate(ranked.itertuples(index=False), start=1):
            lines.append(f"{i}. {row.location}: {row.mean:.1f} Mbps")
        return "\n".join(lines)
    return handle


def _throughput_percentile(ctx: QueryContext) -> str:
    m = _PERCENTILE_RE.search(ctx.question)
    p = clamp_int(m.group(1) if m else DEFAULT_PERCENTILE, 1, 99, DEFAULT_PERCENTILE)
    val = agg.percentile(ctx.subset, "throughput", p)
    return f"{p}th percentile throughput ≈ {val:.1f} Mbps ({fmt_kbps(val)})."


def _worst_rsrp(ctx: QueryContext) -> str:
    worst = ctx.subset.loc[ctx.subset["rsrp"].idxmin()]
    when = pd.Timestamp(worst["timestamp"]).strftime("%Y-%m-%d %H:%M UTC")
    return f"Worst RSRP: {worst['rsrp']:.1f} dBm at {worst['location']} around {when}."


def _summary(ctx: QueryContext) -> str:
    s = ctx.subset
    mbps = agg.mean(s, "throughput")
    c1 = int((s["signal_class"] == 1).sum())
    return "\n".join([
        "Here's a quick summary:",
        f"• Rows: {fmt_count(len(s))}",
        f"• Avg Throughput: {mbps:.1f} Mbps ({fmt_kbps(mbps)})",
        f"• Avg RSRP: {agg.mean(s, 'rsrp'):.1f} dBm",
        f"• Avg RSRQ: {agg.mean(s, 'rsrq'):.1f} dB",
        f"• Avg SINR: {agg.mean(s, 'sinr'):.1f} dB",
        f"• Class 1: {fmt_pct(c1 / len(s) * 100.0)}",
    ])


# evaluated top to bottom, first match wins; overlapping phrasing is settled by order
INTENTS: tuple[Intent, ...] = (
    Intent("schema", lambda q: _has(q, "columns", "schema", "headers"), _schema),
    Intent("count", lambda q: _has(q, "count", "how many", "rows", "measurements"), _count),
    Intent("avg_throughput",
           lambda q: _has(q, "average throughput", "avg throughput", "throughput mean"), _avg_throughput),
    Intent("avg_rsrp", lambda q: _has(q, "average rsrp", "avg rsrp"), _avg_field("rsrp", "RSRP", "dBm")),
    Intent("avg_rsrq", lambda q: _has(q, "average rsrq", "avg rsrq"), _avg_field("rsrq", "RSRQ", "dB")),
    Intent("avg_sinr", lambda q: _has(q, "average sinr", "avg sinr"), _avg_field("sinr", "SINR", "dB")),
    Intent("class1_share",
           lambda q: "class 1" in q and _has(q, "percent", "coverage", "share"), _class1_share),
    Intent("top_sectors", lambda q: bool(_TOP_RE.search(q)), _ranked_sectors(_TOP_RE, "Top", True)),
    Intent("bottom_sectors", lambda q: bool(_BOTTOM_RE.search(q)), _ranked_sectors(_BOTTOM_RE, "Bottom", False)),
    Intent("throughput_percentile", lambda q: "percentile" in q and "throughput" in q, _throughput_percentile),
    Intent("worst_rsrp", lambda q: _has(q, "worst", "lowest") and "rsrp" in q, _worst_rsrp),
    Intent("summary", lambda q: True, _summary),
)


def match_intent(question: str, intents: tuple[Intent, ...] | None = None) -> Intent:
    intents = INTENTS if intents is None else intents
    q = (question or "").lower()
    for intent in intents:
        if intent.matches(q):
            return intent
    return intents[-1]


def answer_question(question: str, dataset, technology: str | None = "All") -> str:
    """Free text in, formatted multi-line text out. Never raises."""
    q = (question or "").lower()
    df = records_to_frame(dataset)
    filters = parse_filters(q, technology)
    subset = filters.apply(df)
    _LOG.debug("question %r -> %s (%d of %d rows)", question, filters, len(subset), len(df))
    if subset.empty:
        return NO_MATCH_MESSAGE

    columns = RECORD_COLUMNS if len(df) else ()
    ctx = QueryContext(question=q, subset=subset, columns=columns)
    intent = match_intent(q)
    try:
        return intent.handle(ctx)
    except Exception:
        _LOG.exception("intent %s failed for %r; answering with the summary", intent.name, question)
        return _summary(ctx)


def summary_context(dataset, technology: str | None = "All") -> dict:
    """KPI context handed to the remote refiner (selector-filtered, not question-filtered)."""
    df = agg.filter_technology(dataset, technology)
    k = agg.kpis(df)
    n = k["total_measurements"]
    columns = list(dataset.columns) if isinstance(dataset, Dataset) else []
    return {
        "kpis": {
            "rows": n,
            "avgThroughputMbps": round(agg.mean(df, "throughput"), 2),
            "avgRSRPdBm": round(agg.mean(df, "rsrp"), 2),
            "avgRSRQdB": round(agg.mean(df, "rsrq"), 2),
            "avgSINRdB": round(agg.mean(df, "sinr"), 2),
            "class1Pct": round(k["class1_count"] / max(1, n) * 100.0, 2),
        },
        "note": "Throughput stored as Mbps in data model; reports often show kbps.",
        "columns": ", ".join(RECORD_COLUMNS) if n else "No columns detected.",
        "source_columns": columns,
    }
