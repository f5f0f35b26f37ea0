import os
from dataclasses import dataclass
from dotenv import load_dotenv

@dataclass(frozen=True)
class Settings:
    # Warehouse (DuckDB file holding analytics.entity_daily)
    warehouse_path: str

    # Logging
    log_level: str
    log_dir: str  # empty string disables the file handler

    # Reports
    report_dir: str

def get_settings() -> Settings:
    load_dotenv()  # reads .env if present

    return Settings(
        warehouse_path=os.getenv("DEFENSE_WAREHOUSE_PATH", "./warehouse.duckdb"),
        log_level=os.getenv("DEFENSE_LOG_LEVEL", "INFO").strip().upper(),
        log_dir=os.getenv("DEFENSE_LOG_DIR", "logs").strip(),
        report_dir=os.getenv("DEFENSE_REPORT_DIR", "reports/defense"),
    )
