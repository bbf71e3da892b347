"""Error taxonomy for the import pipeline, the review flow and publishing.

Each error carries a stable ``error_code`` and a message that can be shown to
the user as-is.
"""

from typing import Optional

EXTRACTION_USER_MESSAGE = "Could not find a recipe in that source."


class TransformerError(Exception):
    error_code = "transformer_error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error_code": self.error_code, "message": self.message}


class InvalidInputError(TransformerError):
    error_code = "invalid_input"
    http_status = 400


class RecipeNotFoundError(TransformerError):
    error_code = "not_found"
    http_status = 404

    def __init__(self, message: str = "There is no recipe under review."):
        super().__init__(message)


class SourceUnreachableError(TransformerError):
    error_code = "source_unreachable"
    http_status = 502

    def __init__(self, reason: str, status_code: Optional[int] = None):
        if status_code is not None:
            message = f"Could not retrieve content from the provided URL (status {status_code}: {reason})."
        else:
            message = f"Could not retrieve content from the provided URL ({reason})."
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code

    def to_dict(self) -> dict:
        return super().to_dict() | {"status_code": self.status_code}


class ExtractionEmptyError(TransformerError):
    error_code = "extraction_empty"
    http_status = 422

    def __init__(self, message: str = EXTRACTION_USER_MESSAGE):
        super().__init__(message)


class ExtractionFailedError(TransformerError):
    error_code = "extraction_failed"
    http_status = 422

    def __init__(self, message: str = EXTRACTION_USER_MESSAGE):
        super().__init__(message)


class PublishFailedError(TransformerError):
    error_code = "publish_failed"
    http_status = 502

    def __init__(self, detail: str, status_code: Optional[int] = None):
        if status_code is not None:
            message = f"Mealie rejected the recipe (status {status_code}): {detail}"
        else:
            message = f"Could not reach Mealie: {detail}"
        super().__init__(message)
        self.detail = detail
        self.status_code = status_code

    def to_dict(self) -> dict:
        return super().to_dict() | {"status_code": self.status_code}
