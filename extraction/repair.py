"""
Deterministic repair of tables returned by the vision model.

The model is asked for rectangular tables but merged / spanning source
cells regularly come back misaligned: a value that visually covers several
rows is written only once, and a mis-rendered merged cell shows up as a
spurious blank at the start of the next row.  Per row, in order:

  1. Leading-empty trim   - if the row is longer than the header, drop up
                            to ``len(row) - len(headers)`` leading blanks.
  2. Length reconciliation - pad with None / truncate on the right.
  3. Vertical back-fill   - a blank in one of the first ``merge_columns``
                            columns takes the last value seen in that
                            column, provided the row has data after it.
  4. Null normalisation   - blank strings become None.

This is a heuristic, not a reconstruction.  The column bound is tunable
because group-style merged cells (department, project, category) are
common in the leading columns and rare elsewhere.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Sequence

from dto.table import (
    CellValue,
    ConfidenceBreakdown,
    RawTable,
    RepairedTable,
)
from extraction.confidence import normalize_confidence

logger = logging.getLogger(__name__)

DEFAULT_MERGE_COLUMNS = 3


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_cell(value: Any) -> CellValue:
    """Turn whatever the model put in a cell into ``str`` or ``None``."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def _has_data(cells: Iterable[CellValue]) -> bool:
    return any(not is_blank(v) for v in cells)


class TableRepairer:
    """Normalises RawTables into RepairedTables (rows == header width)."""

    def __init__(self, merge_columns: int = DEFAULT_MERGE_COLUMNS) -> None:
        if merge_columns < 0:
            raise ValueError("merge_columns must be >= 0")
        self._merge_columns = merge_columns

    def repair(self, table: RawTable) -> RepairedTable:
        headers = ["" if h is None else str(h) for h in table.headers]
        width = len(headers)
        tracked = min(self._merge_columns, width)
        last_seen: List[CellValue] = [None] * tracked

        rows: List[List[CellValue]] = []
        for raw_row in table.rows:
            row = self._reconcile_length([coerce_cell(v) for v in raw_row], width)
            self._back_fill(row, last_seen)
            rows.append([None if is_blank(v) else v for v in row])

        return RepairedTable(
            sheet_name=table.sheet_name,
            headers=headers,
            rows=rows,
            page_number=table.page_number,
            confidence=self._normalize(table.confidence),
        )

    def repair_all(self, tables: Sequence[RawTable]) -> List[RepairedTable]:
        """Repair every table, dropping ones with neither headers nor rows."""
        repaired: List[RepairedTable] = []
        for table in tables:
            if not table.headers and not table.rows:
                logger.debug("  [Repair] Dropping empty table '%s'", table.sheet_name)
                continue
            repaired.append(self.repair(table))
        return repaired

    # ------------------------------------------------------------------
    # Row steps
    # ------------------------------------------------------------------

    @staticmethod
    def _reconcile_length(row: List[CellValue], width: int) -> List[CellValue]:
        if len(row) > width:
            leading = 0
            for value in row:
                if not is_blank(value):
                    break
                leading += 1
            row = row[min(leading, len(row) - width):]

        if len(row) < width:
            row.extend([None] * (width - len(row)))
        elif len(row) > width:
            row = row[:width]
        return row

    @staticmethod
    def _back_fill(row: List[CellValue], last_seen: List[CellValue]) -> None:
        for col in range(len(last_seen)):
            if (
                is_blank(row[col])
                and last_seen[col] is not None
                and _has_data(row[col + 1:])
            ):
                row[col] = last_seen[col]

        for col in range(len(last_seen)):
            if not is_blank(row[col]):
                last_seen[col] = row[col]

    # ------------------------------------------------------------------
    # Confidence
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize(confidence: Any) -> Any:
        if not isinstance(confidence, ConfidenceBreakdown):
            return normalize_confidence(confidence)

        detail = confidence.breakdown
        return ConfidenceBreakdown(
            overall=normalize_confidence(confidence.overall),
            breakdown=detail.model_copy(
                update={
                    name: normalize_confidence(getattr(detail, name), default=1.0)
                    for name in type(detail).model_fields
                }
            ),
            uncertain_cells=[
                cell.model_copy(
                    update={"confidence": normalize_confidence(cell.confidence, default=0.0)}
                )
                for cell in confidence.uncertain_cells
            ],
        )


def repair_table(table: RawTable, merge_columns: int = DEFAULT_MERGE_COLUMNS) -> RepairedTable:
    """Convenience wrapper around ``TableRepairer(merge_columns).repair``."""
    return TableRepairer(merge_columns).repair(table)
