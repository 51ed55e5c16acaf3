import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from apps.common.settings import load_settings
from services.intake.normalize import normalize
from services.mapping.algerian import AlgerianResolver, assess_confidence
from services.mapping.records import RawExtractionRecord
from services.validation.config_validation import build_alias_table, load_field_schemas

console = Console()


def _load_json(p: Path) -> Dict[str, Any]:
    return json.loads(p.read_text(encoding="utf-8"))


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Map an extracted record onto a field schema.")
    ap.add_argument("record", help="JSON file: a flat key/value map or {formData, confidence, documentType}.")
    ap.add_argument("--schema", default=None, help="Schema name in the field-schemas file (default: record kind).")
    ap.add_argument("--config", default=None, help="App config YAML (default: config/app.yaml).")
    ap.add_argument("--generic-only", action="store_true", help="Skip the jurisdiction-specialized pass.")
    ap.add_argument("--json", action="store_true", help="Print the mapped document as JSON.")
    args = ap.parse_args(argv)

    settings = load_settings(args.config)
    schemas = load_field_schemas(settings.field_schemas_path)
    table = build_alias_table(settings.alias_overrides_path)

    raw = RawExtractionRecord.from_dict(_load_json(Path(args.record)))
    schema_name = args.schema or raw.kind
    if schema_name not in schemas:
        console.print(f"[red]Unknown schema {schema_name!r}; available: {sorted(schemas)}[/red]")
        return 2

    use_specialized = settings.jurisdiction == "dz" and not args.generic_only
    specialized = AlgerianResolver(table) if use_specialized else None
    doc = normalize(
        raw,
        schemas[schema_name],
        specialized,
        default_type=settings.default_type,
        table=table,
        fill_defaults=settings.fill_defaults,
    )

    if args.json:
        console.print_json(data=doc.to_dict())
        return 0

    table_out = Table(show_header=True)
    table_out.add_column("field")
    table_out.add_column("value", overflow="fold")
    for name, value in doc.fields.items():
        shown = value if len(value) <= 120 else value[:117] + "..."
        style = "dim" if not value else ("yellow" if name in doc.defaulted else None)
        table_out.add_row(name, shown, style=style)
    console.print(table_out)

    console.print(f"\n[bold]{doc.filled_count}/{len(doc.fields)}[/bold] fields filled, "
                  f"selected type: [green]{doc.selected_type}[/green]")
    if use_specialized:
        check = assess_confidence(doc.canonical_view(), raw.kind)
        colour = "green" if check.is_valid else "red"
        console.print(f"Nomenclature check: [{colour}]{check.confidence}[/{colour}]")
        for err in check.errors:
            console.print(f" - {err}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
