"""
Multi-page aggregation.

Concatenates page outcomes in page order, gives every table a workbook-safe
sheet name that is unique (case-insensitively) and at most 31 characters,
and consolidates the per-page confidences into one document confidence.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Sequence

from openpyxl.workbook.child import INVALID_TITLE_REGEX
from pydantic import BaseModel

from dto.result import PageOutcome
from dto.table import RepairedTable
from dto.warning import ExtractionWarning
from extraction.confidence import mean_confidence

logger = logging.getLogger(__name__)

MAX_SHEET_NAME_LENGTH = 31

# A truncated name is cut back to a space if one lies at or beyond this
# fraction of the room available.
_WORD_BOUNDARY_RATIO = 0.6
_TRAILING_SEPARATORS = " -_,.;:/&(|"


def sanitize_sheet_name(name: str) -> str:
    """Replace characters workbook titles cannot hold and collapse whitespace."""
    cleaned = INVALID_TITLE_REGEX.sub("_", name or "")
    cleaned = " ".join(cleaned.split())
    # Titles may not start or end with an apostrophe.
    return cleaned.strip("'").strip()


def fit_sheet_name(base: str, suffix: str = "", limit: int = MAX_SHEET_NAME_LENGTH) -> str:
    """``base + suffix`` shortened so the whole name fits in *limit* characters."""
    available = max(0, limit - len(suffix))
    if len(base) > available:
        cut = base[:available]
        boundary = cut.rfind(" ")
        if boundary >= math.ceil(available * _WORD_BOUNDARY_RATIO):
            cut = cut[:boundary]
        base = cut.rstrip(_TRAILING_SEPARATORS) or cut
    return (base + suffix)[:limit]


def assign_sheet_names(tables: Sequence[RepairedTable], multi_page: bool) -> List[RepairedTable]:
    """
    Return copies of *tables* with final sheet names.

    Multi-page documents get a ``" (P<n>)"`` suffix; a clash inserts a
    counter into the suffix (``" (2)"`` or ``" (P3-2)"``).
    """
    named: List[RepairedTable] = []
    used = set()

    for index, table in enumerate(tables, start=1):
        base = sanitize_sheet_name(table.sheet_name) or f"Table {index}"
        page = table.page_number

        name = fit_sheet_name(base, f" (P{page})" if multi_page else "")
        counter = 2
        while name.lower() in used:
            suffix = f" (P{page}-{counter})" if multi_page else f" ({counter})"
            name = fit_sheet_name(base, suffix)
            counter += 1

        used.add(name.lower())
        named.append(table.model_copy(update={"sheet_name": name}))

    return named


class Aggregate(BaseModel):
    tables: List[RepairedTable] = []
    warnings: List[ExtractionWarning] = []
    confidence: float = 0.0
    applied_guidance: List[str] = []
    metadata: Dict[str, Any] = {}


class Aggregator:

    def aggregate(self, outcomes: Sequence[PageOutcome], multi_page: bool) -> Aggregate:
        ordered = sorted(outcomes, key=lambda o: o.page_number)

        tables: List[RepairedTable] = []
        warnings: List[ExtractionWarning] = []
        applied: Dict[str, None] = {}
        metadata: Dict[str, Any] = {}

        for outcome in ordered:
            page = outcome.page_number
            tables.extend(t.model_copy(update={"page_number": page}) for t in outcome.tables)
            # The model only ever sees one image, so its own page numbers are meaningless.
            warnings.extend(w.model_copy(update={"page_number": page}) for w in outcome.warnings)
            applied.update(dict.fromkeys(outcome.applied_guidance))
            for key, value in outcome.metadata.items():
                if key not in metadata and value not in (None, ""):
                    metadata[key] = value

        confidence = mean_confidence(o.confidence for o in ordered if o.succeeded)
        logger.info(
            "  [Aggregator] %d table(s) from %d page(s), confidence %.2f",
            len(tables),
            len(ordered),
            confidence,
        )
        return Aggregate(
            tables=assign_sheet_names(tables, multi_page),
            warnings=warnings,
            confidence=confidence,
            applied_guidance=list(applied),
            metadata=metadata,
        )
