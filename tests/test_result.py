from dto.result import ErrorCode, ExtractionResult
from dto.table import RepairedTable
from dto.warning import ExtractionWarning, WarningType


def test_successful_run_goes_to_review():
    result = ExtractionResult(
        success=True,
        tables=[
            RepairedTable(sheet_name="A", headers=["x", "y"], rows=[["1", "2"], ["3", None]]),
            RepairedTable(sheet_name="B", headers=["z"], rows=[["4"]]),
        ],
        warnings=[ExtractionWarning(type=WarningType.LOW_RESOLUTION, message="blurry", page_number=2)],
        confidence=0.8,
        processing_time_ms=1200,
    )

    record = result.to_record()

    assert record["status"] == "review"
    assert record["tableCount"] == 2
    assert record["rowCount"] == 3
    assert record["processingTimeMs"] == 1200
    assert record["tables"][0]["sheetName"] == "A"
    assert record["warnings"][0]["type"] == "low_resolution"
    assert record["errorCode"] is None


def test_failure_record():
    result = ExtractionResult.failure(ErrorCode.NO_TABLES_FOUND, "Nothing found", page_count=3)

    record = result.to_record()

    assert result.success is False
    assert result.page_count == 3
    assert record["status"] == "failed"
    assert record["errorCode"] == "NO_TABLES_FOUND"
    assert record["errorMessage"] == "Nothing found"
    assert record["tableCount"] == 0
