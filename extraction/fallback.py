"""
Key/value fallback for pages on which the model found no table.

Forms, letters, IDs and receipts carry structured data without a grid.
One extra call asks for a two-column Field | Value table instead; if that
also yields nothing the page simply contributes no tables.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from dto.page import PageImage
from dto.result import PageOutcome
from dto.warning import ExtractionWarning, WarningType
from extraction.client import ExtractionClient
from extraction.errors import ExtractionError
from extraction.prompts.fallback import get_fallback_prompt, get_fallback_user_prompt
from extraction.repair import TableRepairer

logger = logging.getLogger(__name__)


class FallbackExtractor:

    def __init__(self, client: ExtractionClient, repairer: TableRepairer) -> None:
        self._client = client
        self._repairer = repairer

    def extract(
        self,
        page: PageImage,
        file_name: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[PageOutcome]:
        """
        Return the page's key/value tables, or None when the fallback
        produced nothing.  Errors are logged and swallowed; RunCancelled
        propagates.
        """
        logger.info("  [Fallback] Page %d: trying key/value extraction", page.page_number)
        try:
            raw = self._client.extract(
                page.pixels,
                get_fallback_prompt(),
                get_fallback_user_prompt(file_name),
                timeout=timeout,
                cancel=cancel,
            )
        except ExtractionError as exc:
            logger.warning("  [Fallback] Page %d: %s", page.page_number, exc)
            return None

        tables = self._repairer.repair_all(raw.tables)
        if not tables:
            logger.info("  [Fallback] Page %d: nothing found", page.page_number)
            return None

        notice = ExtractionWarning(
            type=WarningType.INCONSISTENT_FORMAT,
            message="No tabular structure found; the page was read as key/value pairs",
            page_number=page.page_number,
            suggestion="Check that field names and values were paired correctly",
        )
        logger.info(
            "  [Fallback] Page %d: %d key/value table(s)", page.page_number, len(tables)
        )
        return PageOutcome(
            page_number=page.page_number,
            succeeded=True,
            tables=tables,
            warnings=[*raw.warnings, notice],
            confidence=raw.overall_confidence,
            applied_guidance=raw.applied_guidance,
            metadata=raw.metadata,
        )
