# buildtask/exceptions.py
# Typed errors raised by the reporting pipeline

from fastapi import status


class ReportError(Exception):
    """Base exception for reporting errors; the API layer maps it to a response"""

    kind = "report_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.message}


class ValidationError(ReportError):
    """Malformed or inverted date range, missing required scope"""

    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ReportError):
    """Unknown creator, scope, report or report type"""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class GenerationError(ReportError):
    """Document rendering failed on malformed or incomplete rows"""

    kind = "generation_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class StorageError(ReportError):
    """I/O failure while writing a report artifact"""

    kind = "storage_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConflictError(ReportError):
    """Operation conflicts with existing catalog state"""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
