"""
Engine Configuration

Loads engine_config.yaml and the database connection parameters.

Connection parameters come from the environment (POSTGRES_HOST,
POSTGRES_PORT, POSTGRES_DB, POSTGRES_USER, POSTGRES_PASSWORD); a .env
file in the working directory is honoured.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent
DEFAULT_CONFIG_PATH = CONFIG_DIR / "engine_config.yaml"

DEFAULTS: Dict[str, Any] = {
    "severity_weights": {"HIGH": 5, "MEDIUM": 2, "LOW": 1},
    "high_severity": "HIGH",
    "records": {"id_field": "record_id"},
    "reference": {"key_field": None},
    "rules": {"path": None},
    "execution": {"max_workers": 1},
    "database": {
        "schema": "dq",
        "results_table": "validation_results",
        "weights_table": "severity_weights",
        "records_table": None,
        "reference_table": None,
        "batch_size": 500,
    },
}

SECTIONS = ("records", "reference", "rules", "execution", "database")


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the engine configuration.

    Args:
        config_path: Path to a YAML config (default: dq_engine/config/engine_config.yaml)

    Returns:
        Configuration dictionary with defaults filled in and rules.path
        resolved to an absolute path

    Raises:
        FileNotFoundError: if the file does not exist
        ConfigurationError: if a section is malformed
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")

    for section in SECTIONS:
        if section in raw and not isinstance(raw[section], dict):
            raise ConfigurationError(f"Config section {section!r} must be a mapping")
    if "severity_weights" in raw and not isinstance(raw["severity_weights"], dict):
        raise ConfigurationError("Config section 'severity_weights' must be a mapping")

    config = _merge(DEFAULTS, raw)

    rules_path = config["rules"].get("path")
    if rules_path and not Path(rules_path).is_absolute():
        config["rules"]["path"] = str((path.parent / rules_path).resolve())

    max_workers = config["execution"].get("max_workers")
    if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
        raise ConfigurationError(
            f"execution.max_workers must be a positive integer, got {max_workers!r}"
        )

    logger.info(f"Loaded engine configuration from {path}")
    return config


def get_connection_params() -> Dict[str, Any]:
    """
    PostgreSQL connection parameters from the environment.

    Returns:
        Dict with keys: host, port, database, user, password
    """
    load_dotenv()
    return {
        "host": os.getenv("POSTGRES_HOST", "localhost"),
        "port": int(os.getenv("POSTGRES_PORT", 5432)),
        "database": os.getenv("POSTGRES_DB", "dq_engine"),
        "user": os.getenv("POSTGRES_USER", "postgres"),
        "password": os.getenv("POSTGRES_PASSWORD", ""),
    }


__all__ = [
    "CONFIG_DIR",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "get_connection_params",
]
