# apps/api_gateway/main.py
from __future__ import annotations

from apps.api_gateway.app_factory import create_app
from apps.common.logging import get_logger
from apps.common.settings import load_settings
from services.mapping.algerian import AlgerianResolver
from services.validation.config_validation import build_alias_table, load_field_schemas, schema_coverage
from services.workflow.store import InMemoryCaseStore


settings = load_settings()
LOGGER = get_logger(__name__, level=settings.log_level)

schemas = load_field_schemas(settings.field_schemas_path)
table = build_alias_table(settings.alias_overrides_path)

for kind, schema in schemas.items():
    uncovered = schema_coverage(schema, table)
    if uncovered:
        LOGGER.warning("Schema %s has fields with no alias entry (always empty): %s", kind, uncovered)

specialized = AlgerianResolver(table) if settings.jurisdiction == "dz" else None

app = create_app(
    store=InMemoryCaseStore(),
    schemas=schemas,
    table=table,
    specialized=specialized,
    default_type=settings.default_type,
    fill_defaults=settings.fill_defaults,
    high_priority_below=settings.high_priority_below,
)
