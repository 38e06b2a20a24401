"""
Dataset Errors.

Typed failures raised by the core layer. Handlers turn them into reply
payloads, blueprints turn them into JSON responses.
"""


class DatasetError(Exception):
    """Base class for every failure the core reports to a client."""

    kind = "DatasetError"
    default_message = "Operation failed"

    def __init__(self, message: str | None = None, details: str = ""):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {
            "error": self.kind,
            "message": self.message,
            "details": self.details or self.message,
        }


class NotFoundError(DatasetError):
    kind = "NotFoundError"
    default_message = "Not found"


class AlreadyExistsError(DatasetError):
    kind = "AlreadyExistsError"
    default_message = "Already exists"


class StorageError(DatasetError):
    kind = "StorageError"
    default_message = "Storage operation failed"


class ValidationError(DatasetError):
    kind = "ValidationError"
    default_message = "Invalid request"


class JobError(DatasetError):
    kind = "JobError"
    default_message = "Job failed"
