import threading
import time

import pytest

from dto.result import ErrorCode
from extraction.deadline import call_with_deadline, raise_if_cancelled
from extraction.errors import ExtractionError, RunCancelled


def test_returns_the_result():
    assert call_with_deadline(lambda: 42, timeout=1) == 42


def test_without_limits_runs_inline():
    caller = threading.current_thread()
    assert call_with_deadline(threading.current_thread) is caller


def test_errors_are_re_raised():
    def boom():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        call_with_deadline(boom, timeout=1)


def test_timeout():
    with pytest.raises(ExtractionError) as exc:
        call_with_deadline(lambda: time.sleep(1), timeout=0.05, label="slow call")
    assert exc.value.code == ErrorCode.AI_API_ERROR
    assert exc.value.message.startswith("slow call timed out")


def test_cancel_while_waiting():
    cancel = threading.Event()
    threading.Timer(0.05, cancel.set).start()
    started = time.monotonic()
    with pytest.raises(RunCancelled):
        call_with_deadline(lambda: time.sleep(2), timeout=10, cancel=cancel)
    assert time.monotonic() - started < 1.5


def test_raise_if_cancelled():
    raise_if_cancelled(None)
    event = threading.Event()
    raise_if_cancelled(event)
    event.set()
    with pytest.raises(RunCancelled):
        raise_if_cancelled(event)
