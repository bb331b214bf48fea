# drivetest_AnalyticsReporter/main.py
from __future__ import annotations
from pathlib import Path
import argparse
import logging
import sys
import yaml

from drivetest_AnalyticsReporter.core.classify import configure_from_config
from drivetest_AnalyticsReporter.core.errors import IngestionError
from drivetest_AnalyticsReporter.core.normalize import NormalizeOptions
from drivetest_AnalyticsReporter.core.pipeline import run_pipeline
from drivetest_AnalyticsReporter.core.refine import RemoteRefiner
from drivetest_AnalyticsReporter.core.session import AnalyticsSession
from drivetest_AnalyticsReporter.loaders import csv_loader
from drivetest_AnalyticsReporter.utils.detect import discover_inputs

HERE = Path(__file__).resolve().parent


def load_config(cfg_path: Path) -> dict:
    with cfg_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="drivetest-report",
                                description="Drive-test CSV normalization, KPI reports and local Q&A")
    p.add_argument("--config", type=Path, default=HERE / "config.yaml", help="YAML config file")
    p.add_argument("--input", type=Path, default=None, help="Override input.path (file or folder)")
    p.add_argument("--out", type=Path, default=None, help="Override output.root")
    p.add_argument("--ask", action="append", default=None,
                   help="Question to answer (repeatable); replaces the configured questions")
    p.add_argument("--technology", choices=["All", "4G", "5G"], default=None,
                   help="External technology selector for questions without a 4G/5G cue")
    return p


def _print_refined(question: str):
    def _cb(text: str) -> None:
        print(f"[refined] {question}\n{text}")
    return _cb


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # ---------- config ----------
    cfg = load_config(args.config)
    log_cfg = cfg.get("logging", {}) or {}
    logging.basicConfig(level=str(log_cfg.get("level", "WARNING")).upper(),
                        format="%(levelname)s %(name)s: %(message)s")
    verbose = bool(log_cfg.get("verbose", True))
    if args.technology:
        cfg.setdefault("query", {})["technology"] = args.technology
    configure_from_config(cfg)

    in_path = (args.input or Path((cfg.get("input", {}) or {}).get("path", "."))).resolve()
    recurse = bool((cfg.get("input", {}) or {}).get("recurse", True))
    out_root = (args.out or Path((cfg.get("output", {}) or {}).get("root", "out"))).resolve()
    out_root.mkdir(parents=True, exist_ok=True)
    if verbose:
        print(f"[cfg] input={in_path} (recurse={recurse})")
        print(f"[cfg] output={out_root}")

    # ---------- discover ----------
    detected = discover_inputs(in_path, recurse=recurse)
    if not detected:
        print(f"[INFO] No CSV/ZIP(CSV) inputs found under: {in_path}")
        return 0
    if verbose:
        kinds: dict[str, int] = {}
        for d in detected:
            kinds[d.kind] = kinds.get(d.kind, 0) + 1
        n_tables = sum(d.table_count for d in detected)
        print(f"[detector] found {len(detected)} inputs ({n_tables} CSV tables) → {kinds}")

    technology = str((cfg.get("query", {}) or {}).get("technology", "All"))
    refiner = RemoteRefiner.from_config(cfg)
    questions = args.ask if args.ask else list(cfg.get("questions", []) or [])
    processed = 0

    with AnalyticsSession(technology=technology, refiner=refiner,
                          options=NormalizeOptions.from_config(cfg)) as session:
        for item in detected:
            if verbose:
                print(f"  [load] {item.kind:6} {item.path.name} ({item.table_count} table(s))")
            try:
                tables = csv_loader.load(item.path)
            except (IngestionError, OSError) as e:
                print(f"[WARN] loader failed for {item.path.name}: {e}")
                continue

            for table in tables:
                try:
                    dataset = session.reingest(table, overrides=cfg.get("mapping"))
                except IngestionError as e:
                    print(f"[WARN] {table.name}: {e}")
                    continue
                processed += 1
                if verbose:
                    print(f"[pipeline] {table.name}: {len(dataset)} measurement(s), "
                          f"mapping={dataset.mapping.mapped()}")

                def ask(q: str) -> str:
                    answer = session.ask(q, on_refined=_print_refined(q) if refiner.available else None)
                    print(f"Q: {q}\n{answer}\n")
                    return answer

                run_pipeline(dataset, cfg, out_root, questions=questions, ask=ask)

    if processed == 0 and verbose:
        print("[INFO] No datasets loaded.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
