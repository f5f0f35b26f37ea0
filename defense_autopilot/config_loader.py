"""
Client config loader: YAML file -> validated DefenseClientConfig.
"""
from __future__ import annotations

from pathlib import Path

import yaml

from .config_models import DefenseClientConfig, parse_defense_config


def load_defense_config(path: str | Path) -> DefenseClientConfig:
    """
    Raises FileNotFoundError for a missing file, ValueError when the document
    is not a mapping, and pydantic's ValidationError for invalid content.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Client config not found: {path}")

    data = yaml.safe_load(p.read_text(encoding="utf8"))
    if not isinstance(data, dict):
        raise ValueError("Client config must be a YAML mapping/object")

    return parse_defense_config(data)
