from pathlib import Path
import json
import re
from typing import Dict, List, Optional, Tuple

import jsonschema
import yaml

from services.mapping.aliases import DEFAULT_TABLE, AliasTable
from services.mapping.records import CanonicalField

REPO_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_DIR = REPO_ROOT / "config" / "schemas"


class ConfigurationError(ValueError):
    """Malformed field-schema or alias configuration."""


def _load_schema(name: str) -> dict:
    schema_path = SCHEMA_DIR / f"{name}.schema.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def _read_yaml(path: Path) -> object:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{path}: invalid YAML: {e}") from e


def validate_with_schema(data: object, name: str) -> Tuple[bool, str]:
    try:
        schema = _load_schema(name)
    except FileNotFoundError as e:
        return False, str(e)

    try:
        jsonschema.validate(instance=data, schema=schema)
        return True, "Valid"
    except jsonschema.exceptions.ValidationError as e:
        return False, e.message


def parse_field_schemas(data: object) -> Dict[str, List[CanonicalField]]:
    ok, msg = validate_with_schema(data, "field_schemas")
    if not ok:
        raise ConfigurationError(f"field schemas: {msg}")
    return {
        kind: [
            CanonicalField(name=f["name"], role=f.get("role", "text"), default=f.get("default"))
            for f in fields
        ]
        for kind, fields in data.items()
    }


def load_field_schemas(path: Path) -> Dict[str, List[CanonicalField]]:
    if not path.exists():
        raise ConfigurationError(f"Field schemas not found: {path}")
    return parse_field_schemas(_read_yaml(path))


def parse_alias_overrides(data: object) -> dict:
    data = data or {}
    ok, msg = validate_with_schema(data, "alias_overrides")
    if not ok:
        raise ConfigurationError(f"alias overrides: {msg}")

    for field_name, spec in data.items():
        for p in spec.get("patterns", []) or []:
            try:
                compiled = re.compile(p["regex"])
            except re.error as e:
                raise ConfigurationError(f"alias overrides: {field_name}: bad regex {p['regex']!r}: {e}") from e
            if compiled.groups < 1:
                raise ConfigurationError(f"alias overrides: {field_name}: pattern needs a capture group")
            if p["min_len"] > p["max_len"]:
                raise ConfigurationError(f"alias overrides: {field_name}: min_len > max_len")
    return data


def build_alias_table(path: Optional[Path] = None, base: AliasTable = DEFAULT_TABLE) -> AliasTable:
    """Built-in table plus validated overrides; a missing override file means none."""
    if path is None or not path.exists():
        return base
    return base.with_overrides(parse_alias_overrides(_read_yaml(path)))


def schema_coverage(schema: List[CanonicalField], table: AliasTable = DEFAULT_TABLE) -> List[str]:
    """Fields with no alias entry. They still resolve (always empty)."""
    return [f.name for f in schema if f.name not in table]
