"""Bubble export and import service helpers."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BubbleClient": (
        "compliance_migration.services.bubble.client",
        "BubbleClient",
    ),
    "BubblePage": (
        "compliance_migration.services.bubble.client",
        "BubblePage",
    ),
    "BubbleExport": (
        "compliance_migration.services.bubble.exporter",
        "BubbleExport",
    ),
    "BubbleExporter": (
        "compliance_migration.services.bubble.exporter",
        "BubbleExporter",
    ),
    "IdMappings": (
        "compliance_migration.services.bubble.id_map",
        "IdMappings",
    ),
    "SheetGroup": (
        "compliance_migration.services.bubble.sheet_grouping",
        "SheetGroup",
    ),
    "build_sheet_groups": (
        "compliance_migration.services.bubble.sheet_grouping",
        "build_sheet_groups",
    ),
    "plan_composite_sheets": (
        "compliance_migration.services.bubble.sheet_grouping",
        "plan_composite_sheets",
    ),
    "reconcile_answers": (
        "compliance_migration.services.bubble.answer_reconciler",
        "reconcile_answers",
    ),
    "build_answer_rows": (
        "compliance_migration.services.bubble.answer_reconciler",
        "build_answer_rows",
    ),
    "BubbleImporter": (
        "compliance_migration.services.bubble.importer",
        "BubbleImporter",
    ),
    "ImportSummary": (
        "compliance_migration.services.bubble.importer",
        "ImportSummary",
    ),
    "verify_import": (
        "compliance_migration.services.bubble.verification",
        "verify_import",
    ),
}

__all__ = sorted(_LAZY_IMPORTS)


def __getattr__(name: str) -> Any:
    try:
        module_path, attribute = _LAZY_IMPORTS[name]
    except KeyError as exc:
        raise AttributeError(name) from exc

    module = import_module(module_path)
    value = getattr(module, attribute)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return list(__all__)
