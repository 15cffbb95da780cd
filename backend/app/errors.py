"""
Domain errors for annotation authoring, rendering and report generation.

Every error is scoped to the request or gesture that raised it. The
``status_code`` and ``retryable`` attributes are used by the API exception
handler in ``app.main``.
"""
from typing import Optional, Union

from pydantic.alias_generators import to_snake


class AnnotationError(Exception):
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AnnotationError, ValueError):
    """Malformed shape or tool data"""
    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.reason = message

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Build from a pydantic ValidationError, naming its first failing field"""
        first = exc.errors()[0]
        return cls.located(first.get("loc", ()), first)

    @classmethod
    def located(cls, loc, error: dict, default: str = "shape") -> "ValidationError":
        """
        Build from one pydantic error entry found at ``loc``

        Nested models raise this class from their own constructor; pydantic
        wraps it as a value error at the parent location, so its field is
        appended to ``loc``.
        """
        parts = [field_name(part) for part in loc]
        nested = (error.get("ctx") or {}).get("error")
        if isinstance(nested, ValidationError):
            parts.append(nested.field)
            reason = nested.reason
        else:
            reason = error.get("msg", "invalid value")
        return cls(".".join(parts) or default, reason)


class AtBoundary(AnnotationError):
    """Undo or redo past the ends of the history"""
    status_code = 409


class GestureInProgress(AnnotationError):
    status_code = 409


class DecodeError(AnnotationError):
    """Raster bytes could not be decoded"""
    status_code = 422


class ObjectNotFound(AnnotationError):
    status_code = 404

    def __init__(self, locator: str):
        super().__init__(f"No stored object at {locator!r}")
        self.locator = locator


class SubmissionNotFound(AnnotationError):
    status_code = 404

    def __init__(self, submission_id: int):
        super().__init__(f"Submission {submission_id} not found")
        self.submission_id = submission_id


class UpstreamTimeout(AnnotationError):
    status_code = 504
    retryable = True


class UpstreamUnavailable(AnnotationError):
    status_code = 503
    retryable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class PreconditionFailed(AnnotationError):
    status_code = 400


def field_name(part: Union[str, int]) -> str:
    # Error locations use the camelCase wire aliases
    return to_snake(part) if isinstance(part, str) else str(part)
