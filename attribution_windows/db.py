from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import duckdb

from defense_autopilot.logging_config import setup_logging

from .windows import DailyPerformanceRow, to_date

logger = setup_logging(__name__)

EntityKey = Tuple[str, str, str]  # (asin, entity_id, entity_type)

ENTITY_DAILY_TABLE = "analytics.entity_daily"


def connect_warehouse(path: str | Path, read_only: bool = True) -> duckdb.DuckDBPyConnection:
    p = Path(path).resolve()
    if not p.exists():
        raise FileNotFoundError(f"Warehouse DB not found: {p}")
    return duckdb.connect(str(p), read_only=read_only)


def ensure_entity_daily_table(con: duckdb.DuckDBPyConnection) -> None:
    con.execute("CREATE SCHEMA IF NOT EXISTS analytics;")
    con.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {ENTITY_DAILY_TABLE} (
          asin TEXT NOT NULL,
          entity_id TEXT NOT NULL,
          entity_type TEXT NOT NULL,
          date DATE,
          impressions BIGINT,
          clicks BIGINT,
          conversions DOUBLE,
          cost DOUBLE,
          sales DOUBLE
        );
        """
    )


def load_daily_rows(
    con: duckdb.DuckDBPyConnection,
    reference_date: date,
    total_days: int,
    asin: Optional[str] = None,
) -> Dict[EntityKey, List[DailyPerformanceRow]]:
    """
    Read daily rows inside [reference - total_days, reference) grouped per entity.

    Rows without a date are skipped with a warning; NULL counters read as 0.
    """
    start = reference_date - timedelta(days=total_days)
    sql = f"""
        SELECT asin, entity_id, entity_type, date,
               impressions, clicks, conversions, cost, sales
        FROM {ENTITY_DAILY_TABLE}
        WHERE (date IS NULL OR (date >= ? AND date < ?))
    """
    params: list = [start, reference_date]
    if asin is not None:
        sql += " AND asin = ?"
        params.append(asin)
    sql += " ORDER BY asin, entity_id, date;"

    cur = con.execute(sql, params)
    cols = [c[0] for c in cur.description]
    rows = [dict(zip(cols, r)) for r in cur.fetchall()]

    grouped: Dict[EntityKey, List[DailyPerformanceRow]] = {}
    skipped = 0
    for r in rows:
        key = (str(r["asin"]), str(r["entity_id"]), str(r["entity_type"]))
        if r["date"] is None:
            skipped += 1
            logger.warning(f"Entity {key[1]} ({key[0]}): row without date skipped")
            continue
        r["date"] = to_date(r["date"])
        grouped.setdefault(key, []).append(DailyPerformanceRow.from_dict(r))

    logger.info(
        f"Loaded {len(rows) - skipped} daily rows for {len(grouped)} entities "
        f"({start.isoformat()} .. {reference_date.isoformat()}, skipped={skipped})"
    )
    return grouped
