"""
Centralized logging configuration for the defense engine.

Usage:
    from defense_autopilot.logging_config import setup_logging

    logger = setup_logging(__name__)
    logger.debug("Tier decision")
    logger.info("Batch progress")
    logger.warning("Skipped row")
    logger.error("Entity evaluation failed")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from .settings import get_settings


def setup_logging(
    module_name: str,
    log_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Set up logging for a module with file and console output.

    Args:
        module_name: Name of the module (use __name__)
        log_level: DEBUG, INFO, WARNING, ERROR (default: DEFENSE_LOG_LEVEL)
        log_dir: Directory for log files (default: DEFENSE_LOG_DIR; "" = no file)
        console_output: Whether to output to console (default: True)

    Returns:
        Configured logger instance

    Log Levels:
        DEBUG: Per-tier decisions inside the judge
        INFO: Batch progress (entities loaded, judged, report written)
        WARNING: Missing data, skipped rows, invalid inputs
        ERROR: An entity could not be evaluated

    Log Files:
        Format: {log_dir}/{module}_{date}.log
        Example: logs/judge_2026-02-14.log
    """
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    if log_dir is None:
        log_dir = settings.log_dir

    logger = logging.getLogger(module_name)
    logger.setLevel(level)

    # Prevent duplicate handlers if setup_logging called multiple times
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt='%(asctime)s | %(name)s | %(levelname)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y-%m-%d")
        simple_module = module_name.split('.')[-1]
        file_handler = logging.FileHandler(log_path / f"{simple_module}_{today}.log", encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
