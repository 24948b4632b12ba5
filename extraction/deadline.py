"""
Per-call deadline and cancellation for blocking model calls.

The provider SDKs block the calling thread, so the call runs on a daemon
worker thread while the caller waits in short slices, checking both the
deadline and the run's cancel event.  An abandoned call keeps running in
the background until the SDK's own HTTP timeout ends it; its result is
discarded.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, List, Optional, TypeVar

from dto.result import ErrorCode
from extraction.errors import ExtractionError, RunCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

_POLL_SECONDS = 0.05


def raise_if_cancelled(cancel: Optional[threading.Event], what: str = "run") -> None:
    if cancel is not None and cancel.is_set():
        raise RunCancelled(f"{what} cancelled")


def call_with_deadline(
    fn: Callable[[], T],
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
    *,
    label: str = "model call",
) -> T:
    """
    Run *fn* and return its result.

    Raises ExtractionError(AI_API_ERROR) when *timeout* seconds pass first,
    and RunCancelled as soon as *cancel* is set.  Exceptions raised by *fn*
    are re-raised in the caller's thread.
    """
    raise_if_cancelled(cancel, label)
    if timeout is None and cancel is None:
        return fn()

    result_holder: List[Any] = [None]
    error_holder: List[Optional[Exception]] = [None]

    def _run() -> None:
        try:
            result_holder[0] = fn()
        except Exception as exc:
            error_holder[0] = exc

    thread = threading.Thread(target=_run, name=f"deadline-{label}", daemon=True)
    started = time.monotonic()
    thread.start()

    while True:
        wait = _POLL_SECONDS
        if timeout is not None:
            remaining = timeout - (time.monotonic() - started)
            wait = max(0.0, min(wait, remaining))
        thread.join(wait)
        if not thread.is_alive():
            break
        if cancel is not None and cancel.is_set():
            logger.info("  [Deadline] %s abandoned: run cancelled", label)
            raise RunCancelled(f"{label} cancelled")
        if timeout is not None and time.monotonic() - started >= timeout:
            logger.warning("  [Deadline] %s timed out after %.1fs", label, timeout)
            raise ExtractionError(
                ErrorCode.AI_API_ERROR,
                f"{label} timed out after {timeout:.0f}s",
            )

    if error_holder[0] is not None:
        raise error_holder[0]
    return result_holder[0]
