# drivetest_AnalyticsReporter/core/pipeline.py
from __future__ import annotations
from pathlib import Path
from typing import Callable
import logging

from .model import Dataset
from .query import answer_question
from .reports import write_reports, write_answers

_LOG = logging.getLogger(__name__)

TECH_SELECTORS = ("All", "4G", "5G")


def run_pipeline(dataset: Dataset, cfg: dict, out_root: Path,
                 questions: list[str] | None = None,
                 ask: Callable[[str], str] | None = None) -> list[tuple[str, str]]:
    """
    Reports per technology selector under out_root/<source>/<selector>/ and the
    answers to the questions in out_root/<source>/answers.txt.
    Classification thresholds are left as they were when the dataset was
    normalized; configure them before ingestion.
    ``ask`` defaults to the local engine with the configured selector.
    """
    rep = (cfg or {}).get("reports", {}) or {}
    fmt = str(rep.get("format", "csv")).lower()
    mat_var = str(rep.get("mat_variable", "report"))
    selectors = [str(t) for t in rep.get("technologies", TECH_SELECTORS)]

    src_dir = out_root / (dataset.source or "dataset")
    for tech in selectors:
        if tech not in TECH_SELECTORS:
            print(f"[WARN] {dataset.source}: unknown technology selector '{tech}', skipping.")
            continue
        write_reports(dataset, src_dir / tech, f"{dataset.source} [{tech}]",
                      technology=tech, fmt=fmt, mat_variable=mat_var)

    if ask is None:
        technology = str(((cfg or {}).get("query", {}) or {}).get("technology", "All"))
        ask = lambda q: answer_question(q, dataset, technology)
    qs = list(questions if questions is not None else (cfg or {}).get("questions", []) or [])
    answers = [(q, ask(q)) for q in qs]
    _LOG.info("%s: answered %d question(s)", dataset.source, len(answers))
    if answers:
        write_answers(answers, src_dir / "answers.txt", f"{dataset.source} answers")
    else:
        print(f"[INFO] {dataset.source}: no questions configured.")
    return answers
