"""Error hierarchy for the upload → analysis → result flow.

Every error carries the HTTP status and machine code the API reports,
plus whether the client may retry the same request.
"""

from __future__ import annotations


class FurniCraftError(Exception):
    code = "furnicraft_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable


class ValidationError(FurniCraftError):
    """Bad input: empty title, non-image file, oversized payload."""

    code = "validation_error"
    status_code = 400


class UploadError(FurniCraftError):
    """The image could not be written to storage."""

    code = "upload_failed"
    status_code = 502
    retryable = True


class DatabaseError(FurniCraftError):
    """Insert, update or select against a design table failed."""

    code = "database_error"
    status_code = 503
    retryable = True


class DesignNotFoundError(FurniCraftError):
    code = "design_not_found"
    status_code = 404

    def __init__(self, design_id: str) -> None:
        super().__init__(f"Design {design_id} not found")
        self.design_id = design_id


class AnalysisServiceError(FurniCraftError):
    """The AI collaborator answered with a non-2xx status or was unreachable."""

    code = "analysis_service_error"
    status_code = 502

    def __init__(self, message: str, *, upstream_status: int | None = None, body: str = "") -> None:
        # Throttling, server errors and network failures are worth retrying
        retryable = upstream_status is None or upstream_status >= 500 or upstream_status == 429
        super().__init__(message, retryable=retryable)
        self.upstream_status = upstream_status
        self.body = body


class AnalysisParseError(FurniCraftError):
    """The AI response was not valid JSON or not a JSON object."""

    code = "analysis_parse_error"
    status_code = 502


class AnalysisFailedError(FurniCraftError):
    code = "analysis_failed"
    status_code = 409

    def __init__(self, design_id: str) -> None:
        super().__init__(f"Analysis of design {design_id} failed; upload the design again")
        self.design_id = design_id


class PollTimeoutError(FurniCraftError):
    code = "analysis_timeout"
    status_code = 504
    retryable = True

    def __init__(self, design_id: str, attempts: int) -> None:
        super().__init__(f"No analysis for design {design_id} after {attempts} attempts")
        self.design_id = design_id
        self.attempts = attempts


class PollCancelledError(FurniCraftError):
    code = "poll_cancelled"
    status_code = 499

    def __init__(self, design_id: str) -> None:
        super().__init__(f"Polling for design {design_id} was cancelled")
        self.design_id = design_id


class DesignStateError(FurniCraftError):
    """The design is not in the status the operation requires."""

    code = "invalid_design_state"
    status_code = 409

    def __init__(self, design_id: str, status: str) -> None:
        super().__init__(
            f"Design {design_id} is '{status}'; only pending designs can be analyzed"
        )
        self.design_id = design_id
        self.status = status


class MaterialNotFoundError(FurniCraftError):
    code = "material_not_found"
    status_code = 404

    def __init__(self, material_id: str) -> None:
        super().__init__(f"Material {material_id} not found")
        self.material_id = material_id
