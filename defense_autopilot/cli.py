"""
Defense CLI: Judge attribution-aware defense actions from warehouse daily rows.

Usage:
    python -m defense_autopilot.cli judge configs/client_001.yaml --reference-date 2024-01-15
    python -m defense_autopilot.cli judge configs/client_001.yaml --warehouse warehouse.duckdb --out-dir reports/defense
"""
from __future__ import annotations

import argparse
import json
from datetime import date
from pathlib import Path

from attribution_windows.db import connect_warehouse, load_daily_rows

from .config_loader import load_defense_config
from .engine import build_targets, generate_defense_report, run_defense
from .settings import get_settings


def _parse_date(s: str) -> date:
    parts = s.split("-")
    if len(parts) != 3:
        raise ValueError("reference_date must be YYYY-MM-DD")
    return date(int(parts[0]), int(parts[1]), int(parts[2]))


def cmd_judge(args: argparse.Namespace) -> int:
    settings = get_settings()
    config = load_defense_config(args.client_config)
    reference_date = _parse_date(args.reference_date) if args.reference_date else date.today()
    build_config = config.windows.to_build_config()

    warehouse = Path(args.warehouse or settings.warehouse_path)
    if not warehouse.exists():
        print(f"[Defense] ERROR: Warehouse DB not found: {warehouse}")
        return 1

    con = connect_warehouse(warehouse)
    try:
        rows_by_entity = load_daily_rows(con, reference_date, build_config.total_days)
    finally:
        con.close()
    print(f"[Defense] Loaded daily rows for {len(rows_by_entity)} entities ({reference_date.isoformat()})")

    targets = build_targets(config, rows_by_entity.keys())
    if not targets:
        print("[Defense] ERROR: No entities match a configured product target.")
        return 1

    outcomes = run_defense(
        targets,
        rows_by_entity,
        reference_date,
        build_config=build_config,
        threshold_config=config.thresholds.to_threshold_config(),
        lifecycle_policies=config.policy_table(),
        stable_ratio_thresholds=config.stable_ratio.to_thresholds(),
    )
    report = generate_defense_report(config.client_id, outcomes, reference_date)

    out_dir = Path(args.out_dir or settings.report_dir) / config.client_id
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{reference_date.isoformat()}.json"
    out_path.write_text(json.dumps(report, indent=2, ensure_ascii=False, default=str), encoding="utf-8")

    summary = report["summary"]
    print(f"[Defense]   entities:      {summary['total_entities']}")
    print(f"[Defense]   defend:        {summary['defend_count']}")
    print(f"[Defense]   lifecycle:     {summary['blocked_by_lifecycle_count']} blocked")
    print(f"[Defense]   mitigated:     {summary['mitigated_count']}")
    print(f"[Defense]   up suppressed: {summary['up_suppressed_count']}")
    print(f"[Defense]   errors:        {summary['error_count']}")
    print(f"[Defense] Report saved: {out_path}")

    for entry in report["entities"][: int(args.top)]:
        j = entry["judgment"]
        if not j["should_defend"]:
            break
        print(f"  {j['recommended_action']:<12} {entry['entity_type']} {entry['entity_id']} ({entry['asin']})")
        print(f"     {j['reason_code']}: {j['reason_detail']}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="defense_autopilot", description="Attribution-aware defense judgment"
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    j = sub.add_parser("judge", help="Judge defense actions for every configured entity.")
    j.add_argument("client_config", help="Path to configs/client_001.yaml")
    j.add_argument("--reference-date", default=None, help="YYYY-MM-DD (default: today)")
    j.add_argument("--warehouse", default=None, help="DuckDB path (default: DEFENSE_WAREHOUSE_PATH)")
    j.add_argument("--out-dir", default=None, help="Report directory (default: DEFENSE_REPORT_DIR)")
    j.add_argument("--top", default=10, help="How many defend actions to print (default 10)")
    j.set_defaults(func=cmd_judge)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except (FileNotFoundError, ValueError) as e:
        print(f"[Defense] ERROR: {e}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
