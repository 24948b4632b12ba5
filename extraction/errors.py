from dto.result import ErrorCode


class ExtractionError(Exception):
    """A classified failure; ``code`` is one of the closed ErrorCode set."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class RunCancelled(Exception):
    """The caller cancelled a document run.  No partial result is produced."""
