"""
ExtractionClient - one vision-model call per page (or per analysis).

Wraps an AIService with the things every call needs: an image format
check, a per-call deadline / cancellation, classification of failures into
ErrorCodes, and tolerant conversion of the model's JSON into DTOs.

Parse failures are not retried here; transient transport errors are
already retried inside the provider services.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ai.factory import ServiceNotConfiguredError, get_decision_for_media_service
from ai.response_parser import parse_llm_json
from ai.service import AIService
from dto.result import ErrorCode, RawResult
from dto.table import ConfidenceBreakdown, RawTable
from dto.warning import ExtractionWarning, WarningType
from extraction.confidence import normalize_confidence
from extraction.deadline import call_with_deadline
from extraction.errors import ExtractionError, RunCancelled
from extraction.rasterizer import sniff_mime_type
from extraction.repair import coerce_cell

logger = logging.getLogger(__name__)

# Formats every supported provider accepts inline.
ACCEPTED_IMAGE_TYPES = ("image/png", "image/jpeg", "image/gif", "image/webp")

_IMAGE_REJECTION_HINTS = (
    "invalid image",
    "unsupported image",
    "image format",
    "could not process image",
    "unable to process input image",
    "not a valid image",
    "image_parse_error",
)


class ExtractionClient:
    """
    Calls the vision model and returns parsed, but not yet repaired, output.

    *service* defaults to the provider selected by ``AI_MEDIA_PROVIDER``;
    it is resolved on first use so a missing API key surfaces as
    ``ExtractionError(CONFIG_ERROR)`` from the call, not from construction.
    *timeout* is the provider SDK's own HTTP timeout.
    """

    def __init__(
        self,
        service: Optional[AIService] = None,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self._service = service
        self._timeout = timeout

    def _get_service(self) -> AIService:
        if self._service is None:
            try:
                self._service = get_decision_for_media_service(timeout=self._timeout)
            except (ServiceNotConfiguredError, ValueError) as exc:
                raise ExtractionError(ErrorCode.CONFIG_ERROR, str(exc)) from exc
        return self._service

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(
        self,
        image: bytes,
        system_prompt: str,
        user_prompt: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> RawResult:
        """
        Send one page image and return the parsed RawResult.

        Raises ExtractionError (CONFIG_ERROR, INVALID_IMAGE_FORMAT,
        AI_API_ERROR, AI_NO_RESPONSE, AI_PARSE_ERROR) or RunCancelled.
        """
        mime_type = self._check_image(image)
        service = self._get_service()

        raw = self._call(
            lambda: service.get_decision_for_media(
                user_prompt,
                image,
                mime_type=mime_type,
                system_prompt=system_prompt,
            ),
            timeout,
            cancel,
            label="extraction call",
        )
        payload = self._parse(raw)

        if isinstance(payload, list):
            payload = {"tables": payload}
        elif "tables" not in payload and "headers" in payload:
            # A single table returned without the envelope.
            payload = {"tables": [payload]}

        return parse_raw_result(payload)

    def analyze(
        self,
        images: Sequence[bytes],
        prompt: str,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Dict[str, Any]:
        """Send several page images in one request and return the JSON object."""
        if not images:
            raise ExtractionError(ErrorCode.INVALID_IMAGE_FORMAT, "No images to analyse")
        mime_types = {self._check_image(img) for img in images}
        if len(mime_types) > 1:
            raise ExtractionError(
                ErrorCode.INVALID_IMAGE_FORMAT,
                "Analysis images must share one format",
            )
        mime_type = mime_types.pop()
        service = self._get_service()

        raw = self._call(
            lambda: service.get_decision_for_images(prompt, list(images), mime_type=mime_type),
            timeout,
            cancel,
            label="analysis call",
        )
        payload = self._parse(raw)
        if not isinstance(payload, dict):
            raise ExtractionError(
                ErrorCode.AI_PARSE_ERROR, "Analysis response is not a JSON object"
            )
        return payload

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_image(image: bytes) -> str:
        mime_type = sniff_mime_type(image or b"")
        if mime_type not in ACCEPTED_IMAGE_TYPES:
            raise ExtractionError(
                ErrorCode.INVALID_IMAGE_FORMAT,
                f"Unsupported image payload ({mime_type})",
            )
        return mime_type

    @staticmethod
    def _call(fn, timeout, cancel, *, label: str) -> str:
        try:
            return call_with_deadline(fn, timeout, cancel, label=label)
        except (ExtractionError, RunCancelled):
            raise
        except Exception as exc:
            raise classify_service_error(exc) from exc

    @staticmethod
    def _parse(raw: Optional[str]) -> Any:
        if raw is None or not str(raw).strip():
            raise ExtractionError(ErrorCode.AI_NO_RESPONSE, "Model returned an empty response")
        payload = parse_llm_json(raw)
        if payload is None:
            raise ExtractionError(
                ErrorCode.AI_PARSE_ERROR, "Model response is not valid JSON"
            )
        return payload


def classify_service_error(exc: Exception) -> ExtractionError:
    """Map an exception raised by a provider into a classified ExtractionError."""
    if isinstance(exc, ServiceNotConfiguredError):
        return ExtractionError(ErrorCode.CONFIG_ERROR, str(exc))
    text = str(exc).lower()
    if any(hint in text for hint in _IMAGE_REJECTION_HINTS):
        return ExtractionError(ErrorCode.INVALID_IMAGE_FORMAT, str(exc))
    logger.warning("  [Client] Model call failed: %s: %s", type(exc).__name__, exc)
    return ExtractionError(ErrorCode.AI_API_ERROR, f"{type(exc).__name__}: {exc}")


# ---------------------------------------------------------------------------
# Tolerant payload → DTO conversion
# ---------------------------------------------------------------------------

def parse_raw_result(payload: Dict[str, Any]) -> RawResult:
    tables: List[RawTable] = []
    for i, item in enumerate(_as_list(payload.get("tables"))):
        table = _coerce_table(item)
        if table is None:
            logger.warning("  [Client] Skipping invalid table %d", i)
            continue
        tables.append(table)

    warnings: List[ExtractionWarning] = []
    for item in _as_list(payload.get("warnings")):
        warning = coerce_warning(item)
        if warning is not None:
            warnings.append(warning)

    metadata = payload.get("metadata")
    applied = payload.get("appliedGuidance", payload.get("applied_guidance"))

    return RawResult(
        tables=tables,
        warnings=warnings,
        overall_confidence=normalize_confidence(
            payload.get("overallConfidence", payload.get("overall_confidence"))
        ),
        applied_guidance=[str(a) for a in _as_list(applied) if a],
        metadata=metadata if isinstance(metadata, dict) else {},
    )


def coerce_warning(item: Any) -> Optional[ExtractionWarning]:
    """Accept a warning object or a bare string; unknown types become structure_ambiguous."""
    if isinstance(item, str):
        if not item.strip():
            return None
        return ExtractionWarning(type=WarningType.STRUCTURE_AMBIGUOUS, message=item.strip())
    if not isinstance(item, dict):
        return None

    try:
        kind = WarningType(str(item.get("type", "")).strip().lower())
    except ValueError:
        kind = WarningType.STRUCTURE_AMBIGUOUS

    page = item.get("pageNumber", item.get("page_number"))
    return ExtractionWarning(
        type=kind,
        message=str(item.get("message") or kind.value.replace("_", " ")),
        page_number=page if isinstance(page, int) and not isinstance(page, bool) and page >= 1 else None,
        suggestion=str(item.get("suggestion") or ""),
    )


def _coerce_table(item: Any) -> Optional[RawTable]:
    if not isinstance(item, dict):
        return None

    headers = [coerce_cell(h) for h in _as_list(item.get("headers"))]
    raw_rows = _as_list(item.get("rows"))

    if not headers and raw_rows and isinstance(raw_rows[0], dict):
        headers = [str(k) for k in raw_rows[0].keys()]

    rows: List[List[Optional[str]]] = []
    for raw_row in raw_rows:
        if isinstance(raw_row, dict):
            rows.append([coerce_cell(raw_row.get(h)) for h in headers])
        elif isinstance(raw_row, (list, tuple)):
            rows.append([coerce_cell(v) for v in raw_row])
        else:
            rows.append([coerce_cell(raw_row)])

    if not headers and rows:
        width = max(len(r) for r in rows)
        headers = [f"Column {i}" for i in range(1, width + 1)]

    page = item.get("pageNumber", item.get("page_number"))
    return RawTable(
        sheet_name=str(item.get("sheetName") or item.get("sheet_name") or ""),
        headers=["" if h is None else h for h in headers],
        rows=rows,
        page_number=page if isinstance(page, int) and not isinstance(page, bool) and page >= 1 else 1,
        confidence=_coerce_confidence(item.get("confidence")),
    )


def _coerce_confidence(value: Any) -> Any:
    if isinstance(value, dict):
        try:
            return ConfidenceBreakdown.model_validate(value)
        except ValidationError:
            return normalize_confidence(value.get("overall"))
    return normalize_confidence(value)


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []
