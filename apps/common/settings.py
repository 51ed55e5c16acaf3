# apps/common/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from services.validation.config_validation import ConfigurationError


REPO_ROOT = Path(__file__).resolve().parents[2]

JURISDICTIONS = ("generic", "dz")


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data or {}


def _env(key: str) -> Optional[str]:
    v = os.getenv(key)
    return v.strip() if isinstance(v, str) and v.strip() else None


def _as_path(v: str) -> Path:
    p = Path(v).expanduser()
    if not p.is_absolute():
        p = REPO_ROOT / p
    return p.resolve()


def _as_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppSettings:
    field_schemas_path: Path
    alias_overrides_path: Optional[Path]
    default_type: str
    jurisdiction: str
    fill_defaults: bool
    high_priority_below: float
    log_level: str


def load_settings(config_path: Optional[str] = None) -> AppSettings:
    """
    Resolution order (highest -> lowest):
      1) Explicit function argument
      2) LEGAL_CONFIG_PATH env var
      3) config/app.yaml
    Individual fields can be overridden via env vars:
      - LEGAL_FIELD_SCHEMAS_PATH
      - LEGAL_ALIAS_OVERRIDES_PATH
      - LEGAL_DEFAULT_TYPE
      - LEGAL_JURISDICTION ("generic" or "dz")
      - LEGAL_FILL_DEFAULTS
      - LEGAL_HIGH_PRIORITY_BELOW
      - LEGAL_LOG_LEVEL
    """
    cfg_path = (
        Path(config_path)
        if config_path
        else _as_path(_env("LEGAL_CONFIG_PATH") or "config/app.yaml")
    )
    cfg = _read_yaml(cfg_path)

    field_schemas_path = _env("LEGAL_FIELD_SCHEMAS_PATH") or cfg.get("field_schemas_path")
    alias_overrides_path = _env("LEGAL_ALIAS_OVERRIDES_PATH") or cfg.get("alias_overrides_path")
    default_type = _env("LEGAL_DEFAULT_TYPE") or cfg.get("default_type") or "loi"
    jurisdiction = (_env("LEGAL_JURISDICTION") or cfg.get("jurisdiction") or "generic").lower()
    fill_defaults = _env("LEGAL_FILL_DEFAULTS") or cfg.get("fill_defaults", False)
    threshold = _env("LEGAL_HIGH_PRIORITY_BELOW") or cfg.get("high_priority_below", 80)
    log_level = (_env("LEGAL_LOG_LEVEL") or cfg.get("log_level") or "INFO").upper()

    missing = []
    if not field_schemas_path:
        missing.append("field_schemas_path / LEGAL_FIELD_SCHEMAS_PATH")
    if missing:
        raise ConfigurationError(
            "Missing required configuration: " + ", ".join(missing) +
            f". Config file used: {cfg_path}"
        )

    if jurisdiction not in JURISDICTIONS:
        raise ConfigurationError(f"Unknown jurisdiction {jurisdiction!r}; expected one of {JURISDICTIONS}")

    try:
        high_priority_below = float(threshold)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"high_priority_below must be a number, got {threshold!r}") from e

    return AppSettings(
        field_schemas_path=_as_path(str(field_schemas_path)),
        alias_overrides_path=_as_path(str(alias_overrides_path)) if alias_overrides_path else None,
        default_type=str(default_type),
        jurisdiction=jurisdiction,
        fill_defaults=_as_bool(fill_defaults),
        high_priority_below=high_priority_below,
        log_level=log_level,
    )
