"""
Template completeness checks.

A template names the fields its document type must carry.  A field counts
as found when the model reported it in ``metadata`` or when it appears in
a table, either as a ``Field | Value`` row or as a column header with at
least one value.  Missing fields become ``partial_table`` warnings; values
are never checked arithmetically.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Sequence

from dto.table import RepairedTable
from dto.warning import ExtractionWarning, WarningType
from extraction.prompts.templates import ExtractionTemplate
from extraction.repair import is_blank

logger = logging.getLogger(__name__)


def _norm(label: Any) -> str:
    return " ".join(str(label).lower().split()).rstrip(":").strip()


def _in_key_value_rows(tables: Iterable[RepairedTable], labels: Sequence[str]) -> bool:
    for table in tables:
        if len(table.headers) < 2:
            continue
        for row in table.rows:
            if row[0] is not None and _norm(row[0]) in labels and _has_value(row[1:]):
                return True
    return False


def _in_columns(tables: Iterable[RepairedTable], labels: Sequence[str]) -> bool:
    for table in tables:
        for col, header in enumerate(table.headers):
            if _norm(header) in labels and any(not is_blank(row[col]) for row in table.rows):
                return True
    return False


def _has_value(cells: Iterable[Any]) -> bool:
    return any(not is_blank(c) for c in cells)


def validate_required_fields(
    template: ExtractionTemplate,
    tables: Sequence[RepairedTable],
    metadata: Dict[str, Any],
) -> List[ExtractionWarning]:
    warnings: List[ExtractionWarning] = []

    for field, labels in template.required_fields.items():
        if not is_blank(metadata.get(field)):
            continue
        wanted = [_norm(label) for label in labels] + [_norm(field.replace("_", " "))]
        if _in_key_value_rows(tables, wanted) or _in_columns(tables, wanted):
            continue

        readable = field.replace("_", " ")
        logger.info("  [Validation] %s: required field '%s' not found", template.id, field)
        warnings.append(
            ExtractionWarning(
                type=WarningType.PARTIAL_TABLE,
                message=f"Required field '{readable}' was not found in the extracted data",
                suggestion=f"Check the document for the {readable} and add it manually if present",
            )
        )

    return warnings
