"""
Result DTOs.

    RawResult         - one parsed response of the vision model for one page
    PageOutcome       - one page after repair / fallback, or its failure
    ExtractionResult  - the terminal artefact of a document run
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from dto.base import CamelModel
from dto.table import RawTable, RepairedTable
from dto.warning import ExtractionWarning


class ErrorCode(str, Enum):
    PDF_CONVERSION_FAILED = "PDF_CONVERSION_FAILED"
    CONFIG_ERROR = "CONFIG_ERROR"
    AI_API_ERROR = "AI_API_ERROR"
    INVALID_IMAGE_FORMAT = "INVALID_IMAGE_FORMAT"
    AI_NO_RESPONSE = "AI_NO_RESPONSE"
    AI_PARSE_ERROR = "AI_PARSE_ERROR"
    NO_TABLES_FOUND = "NO_TABLES_FOUND"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RawResult(CamelModel):
    tables: List[RawTable] = []
    warnings: List[ExtractionWarning] = []
    overall_confidence: float = 0.9
    applied_guidance: List[str] = []
    metadata: Dict[str, Any] = {}


class PageOutcome(CamelModel):
    """What one page contributed to a run.  Failed pages carry no tables."""

    page_number: int
    succeeded: bool
    tables: List[RepairedTable] = []
    warnings: List[ExtractionWarning] = []
    confidence: Optional[float] = None
    applied_guidance: List[str] = []
    metadata: Dict[str, Any] = {}
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None


class ExtractionResult(CamelModel):
    success: bool
    tables: List[RepairedTable] = []
    warnings: List[ExtractionWarning] = []
    confidence: float = 0.0
    processing_time_ms: int = 0
    page_count: int = 0
    pages_processed: int = 0
    applied_guidance: List[str] = []
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @classmethod
    def failure(
        cls,
        code: ErrorCode,
        message: str,
        *,
        warnings: Optional[List[ExtractionWarning]] = None,
        processing_time_ms: int = 0,
        page_count: int = 0,
        pages_processed: int = 0,
    ) -> "ExtractionResult":
        return cls(
            success=False,
            warnings=warnings or [],
            processing_time_ms=processing_time_ms,
            page_count=page_count,
            pages_processed=pages_processed,
            error=message,
            error_code=code,
        )

    def to_record(self) -> Dict[str, Any]:
        """
        Fields a conversion record needs.  Persistence itself is owned by
        the caller; successful runs go to ``review`` for the user to check.
        """
        dumped = self.model_dump(mode="json", by_alias=True)
        return {
            "status": "review" if self.success else "failed",
            "tables": dumped["tables"],
            "warnings": dumped["warnings"],
            "confidence": self.confidence,
            "processingTimeMs": self.processing_time_ms,
            "tableCount": len(self.tables),
            "rowCount": sum(len(t.rows) for t in self.tables),
            "errorCode": dumped["errorCode"],
            "errorMessage": self.error,
        }
