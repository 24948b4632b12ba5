"""
Table DTOs.

    RawTable        - untrusted table as returned by the vision model
    RepairedTable   - same shape, every row exactly len(headers) cells
"""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import model_validator

from dto.base import CamelModel


class UncertainCell(CamelModel):
    row: int
    col: int
    value: str = ""
    confidence: float = 0.0
    reason: str = ""


class ConfidenceDetail(CamelModel):
    text_clarity: float = 1.0
    structure_clarity: float = 1.0
    special_chars: float = 1.0
    completeness: float = 1.0


class ConfidenceBreakdown(CamelModel):
    """Optional refinement of a plain confidence number."""

    overall: float
    breakdown: ConfidenceDetail = ConfidenceDetail()
    uncertain_cells: List[UncertainCell] = []


Confidence = Union[float, ConfidenceBreakdown]
CellValue = Optional[str]


class RawTable(CamelModel):
    sheet_name: str = ""
    headers: List[str] = []
    rows: List[List[CellValue]] = []
    page_number: int = 1
    confidence: Confidence = 0.9

    @property
    def overall_confidence(self) -> float:
        if isinstance(self.confidence, ConfidenceBreakdown):
            return self.confidence.overall
        return float(self.confidence)


class RepairedTable(RawTable):
    """A RawTable whose rows all match the header count."""

    @model_validator(mode="after")
    def _check_row_lengths(self) -> "RepairedTable":
        width = len(self.headers)
        for i, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(
                    f"row {i} has {len(row)} cells, expected {width}"
                )
        return self
