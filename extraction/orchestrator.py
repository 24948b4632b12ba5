"""
Extraction Orchestrator.

Drives one document run: rasterize, then for each page in order call the
vision model, repair its tables and fall back to key/value extraction when
a page has none; finally aggregate the pages into one ExtractionResult.

Per-page failures never end the run.  They are recorded as warnings and the
next page is processed; the run only fails when no table survives at all.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Union

from dto.analysis import AnalysisResult, AnalysisStatus
from dto.guidance import Guidance
from dto.page import PageImage
from dto.result import ErrorCode, ExtractionResult, PageOutcome
from dto.warning import ExtractionWarning, WarningType
from extraction.aggregator import Aggregator
from extraction.analysis import AnalysisEngine
from extraction.client import ExtractionClient
from extraction.config import ExtractionConfig
from extraction.deadline import raise_if_cancelled
from extraction.errors import ExtractionError, RunCancelled
from extraction.fallback import FallbackExtractor
from extraction.prompts.extraction import get_extraction_user_prompt
from extraction.prompts.guided import get_guided_prompt, get_guided_user_prompt
from extraction.prompts.templates import DEFAULT_TEMPLATE_ID, ExtractionTemplate, get_template
from extraction.rasterizer import Rasterizer
from extraction.repair import TableRepairer
from extraction.validation import validate_required_fields

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class RunState(str, Enum):
    RASTERIZING = "rasterizing"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    REPAIRING = "repairing"
    FALLING_BACK = "falling_back"
    AGGREGATING = "aggregating"
    READY = "ready"
    FAILED = "failed"


class ExtractionOrchestrator:
    """
    Entry point for analysis and extraction of one document at a time.

    Holds no per-run state, so one instance may serve concurrent runs as
    long as each passes its own cancel event.
    """

    def __init__(
        self,
        config: Optional[ExtractionConfig] = None,
        *,
        rasterizer: Optional[Rasterizer] = None,
        client: Optional[ExtractionClient] = None,
    ) -> None:
        self._config = config or ExtractionConfig.from_env()
        self._rasterizer = rasterizer or Rasterizer(
            dpi=self._config.dpi,
            max_side=self._config.max_image_side,
            soffice_timeout=self._config.soffice_timeout_seconds,
        )
        self._client = client or ExtractionClient(timeout=self._config.call_timeout_seconds)
        self._repairer = TableRepairer(self._config.merge_columns)
        self._fallback = FallbackExtractor(self._client, self._repairer)
        self._analysis = AnalysisEngine(self._rasterizer, self._client, self._config)
        self._aggregator = Aggregator()

    @property
    def config(self) -> ExtractionConfig:
        return self._config

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(
        self,
        document: bytes,
        file_name: str = "document",
        *,
        cancel: Optional[threading.Event] = None,
    ) -> AnalysisResult:
        self._enter(file_name, RunState.ANALYZING)
        too_large = self._size_error(document)
        if too_large is not None:
            return AnalysisResult(
                status=AnalysisStatus.FAILED,
                error=too_large.message,
                error_code=too_large.code.value,
            )
        return self._analysis.analyze(document, file_name, cancel=cancel)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract(
        self,
        document: bytes,
        template: Union[str, Guidance] = DEFAULT_TEMPLATE_ID,
        *,
        file_name: str = "document",
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ExtractionResult:
        """
        Extract every table of *document*.

        *template* is either a template id (unknown ids use ``generic``) or
        a Guidance collected after analysis.  Failures are reported on the
        result; only RunCancelled is raised.
        """
        started = time.monotonic()
        try:
            return self._run(document, template, file_name, on_progress, cancel, started)
        except RunCancelled:
            logger.info("  [Orchestrator] %s: run cancelled", file_name)
            raise
        except Exception as exc:
            logger.exception("  [Orchestrator] %s: unexpected failure", file_name)
            self._enter(file_name, RunState.FAILED)
            return ExtractionResult.failure(
                ErrorCode.INTERNAL_ERROR,
                f"Unexpected error: {exc}",
                processing_time_ms=_elapsed_ms(started),
            )

    def _run(
        self,
        document: bytes,
        template: Union[str, Guidance],
        file_name: str,
        on_progress: Optional[ProgressCallback],
        cancel: Optional[threading.Event],
        started: float,
    ) -> ExtractionResult:
        too_large = self._size_error(document)
        if too_large is not None:
            self._enter(file_name, RunState.FAILED)
            return ExtractionResult.failure(too_large.code, too_large.message)

        # 1. Rasterize
        self._enter(file_name, RunState.RASTERIZING)
        max_pages = None if self._config.unlimited else self._config.max_pages
        try:
            raster = self._rasterizer.rasterize(document, max_pages=max_pages)
        except ExtractionError as exc:
            logger.warning("  [Orchestrator] %s: %s", file_name, exc)
            self._enter(file_name, RunState.FAILED)
            return ExtractionResult.failure(
                exc.code, exc.message, processing_time_ms=_elapsed_ms(started)
            )
        raise_if_cancelled(cancel)

        run_warnings = self._raster_warnings(raster.total_pages, raster.pages, max_pages)

        # 2. Prompts
        extraction_template: Optional[ExtractionTemplate] = None
        if isinstance(template, Guidance):
            system_prompt = get_guided_prompt(template)
            user_prompt = get_guided_user_prompt(file_name)
        else:
            extraction_template = get_template(template)
            system_prompt = extraction_template.system_prompt
            user_prompt = get_extraction_user_prompt(file_name)

        # 3. Pages, in order
        outcomes: List[PageOutcome] = []
        total = len(raster.pages)
        for index, page in enumerate(raster.pages, start=1):
            raise_if_cancelled(cancel)
            if on_progress is not None:
                on_progress(index, total)
            logger.info("  [Orchestrator] %s: page %d (%d/%d)", file_name, page.page_number, index, total)
            outcomes.append(
                self._extract_page(page, system_prompt, user_prompt, file_name, cancel)
            )

        failed = [o for o in outcomes if not o.succeeded]
        if outcomes and len(failed) == len(outcomes) and all(
            o.error_code == ErrorCode.CONFIG_ERROR for o in failed
        ):
            self._enter(file_name, RunState.FAILED)
            return ExtractionResult.failure(
                ErrorCode.CONFIG_ERROR,
                failed[0].error or "AI service is not configured",
                processing_time_ms=_elapsed_ms(started),
                page_count=raster.total_pages,
                pages_processed=len(outcomes),
            )

        # 4. Aggregate
        self._enter(file_name, RunState.AGGREGATING)
        aggregate = self._aggregator.aggregate(outcomes, multi_page=raster.total_pages > 1)
        warnings = run_warnings + aggregate.warnings

        if not aggregate.tables:
            self._enter(file_name, RunState.FAILED)
            message = "No tables could be extracted from the document"
            if failed:
                message += f" ({len(failed)} of {len(outcomes)} page(s) failed)"
            return ExtractionResult.failure(
                ErrorCode.NO_TABLES_FOUND,
                message,
                warnings=warnings,
                processing_time_ms=_elapsed_ms(started),
                page_count=raster.total_pages,
                pages_processed=len(outcomes),
            )

        if extraction_template is not None:
            warnings += validate_required_fields(
                extraction_template, aggregate.tables, aggregate.metadata
            )

        self._enter(file_name, RunState.READY)
        return ExtractionResult(
            success=True,
            tables=aggregate.tables,
            warnings=warnings,
            confidence=aggregate.confidence,
            processing_time_ms=_elapsed_ms(started),
            page_count=raster.total_pages,
            pages_processed=len(outcomes),
            applied_guidance=aggregate.applied_guidance,
        )

    def _extract_page(
        self,
        page: PageImage,
        system_prompt: str,
        user_prompt: str,
        file_name: str,
        cancel: Optional[threading.Event],
    ) -> PageOutcome:
        number = page.page_number
        timeout = self._config.call_timeout_seconds

        self._enter(file_name, RunState.EXTRACTING, number)
        try:
            raw = self._client.extract(
                page.pixels, system_prompt, user_prompt, timeout=timeout, cancel=cancel
            )
        except ExtractionError as exc:
            logger.warning("  [Orchestrator] Page %d failed: %s", number, exc)
            return PageOutcome(
                page_number=number,
                succeeded=False,
                warnings=[
                    ExtractionWarning(
                        type=WarningType.PARTIAL_TABLE,
                        message=f"Page {number} could not be processed: {exc.message}",
                        page_number=number,
                        suggestion="Try uploading this page separately as an image",
                    )
                ],
                error=exc.message,
                error_code=exc.code,
            )

        self._enter(file_name, RunState.REPAIRING, number)
        tables = self._repairer.repair_all(raw.tables)
        outcome = PageOutcome(
            page_number=number,
            succeeded=True,
            tables=tables,
            warnings=raw.warnings,
            confidence=raw.overall_confidence,
            applied_guidance=raw.applied_guidance,
            metadata=raw.metadata,
        )
        if tables:
            logger.info("  [Orchestrator]   -> %d table(s) on page %d", len(tables), number)
            return outcome

        self._enter(file_name, RunState.FALLING_BACK, number)
        fallback = self._fallback.extract(page, file_name, timeout=timeout, cancel=cancel)
        if fallback is None:
            return outcome
        return fallback.model_copy(
            update={"warnings": [*raw.warnings, *fallback.warnings]}
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _enter(file_name: str, state: RunState, page: Optional[int] = None) -> None:
        if page is None:
            logger.info("  [Orchestrator] %s → %s", file_name, state.value)
        else:
            logger.debug("  [Orchestrator] %s page %d → %s", file_name, page, state.value)

    def _size_error(self, document: bytes) -> Optional[ExtractionError]:
        if self._config.unlimited or len(document) <= self._config.max_file_bytes:
            return None
        return ExtractionError(
            ErrorCode.FILE_TOO_LARGE,
            f"File is {len(document) / (1024 * 1024):.1f} MB; "
            f"the limit is {self._config.max_file_bytes / (1024 * 1024):.0f} MB",
        )

    @staticmethod
    def _raster_warnings(
        total_pages: int,
        pages: List[PageImage],
        max_pages: Optional[int],
    ) -> List[ExtractionWarning]:
        warnings: List[ExtractionWarning] = []
        limit = total_pages if max_pages is None else min(total_pages, max_pages)

        rendered = {p.page_number for p in pages}
        for number in range(1, limit + 1):
            if number not in rendered:
                warnings.append(
                    ExtractionWarning(
                        type=WarningType.PARTIAL_TABLE,
                        message=f"Page {number} could not be rendered",
                        page_number=number,
                        suggestion="Try uploading this page separately as an image",
                    )
                )

        if limit < total_pages:
            warnings.append(
                ExtractionWarning(
                    type=WarningType.SKIPPED_CONTENT,
                    message=f"Only the first {limit} of {total_pages} pages were processed",
                    suggestion="Split the document into smaller files to extract the rest",
                )
            )
        return warnings


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
