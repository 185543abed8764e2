from typing import Any


class MovieServiceError(Exception):
    """Base error for every failure the movie service surfaces to its callers."""

    code: str = "MOVIE_SERVICE_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class ValidationError(MovieServiceError):
    """Malformed or out-of-range input. Never retried, surfaced verbatim."""

    code = "VALIDATION_ERROR"


class EmptyInputError(ValidationError):
    code = "EMPTY_INPUT"


class DimensionMismatchError(ValidationError):
    code = "DIMENSION_MISMATCH"


class NotFoundError(MovieServiceError):
    """Referenced movie, watch or queue item is absent, or a precondition is unmet."""

    code = "NOT_FOUND"


class DatabaseError(MovieServiceError):
    code = "DATABASE_ERROR"


class UpstreamError(MovieServiceError):
    """An external provider failed after the retry budget was spent."""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, details: Any = None, status_code: int | None = None):
        super().__init__(message, details)
        self.status_code = status_code


class UpstreamTimeoutError(UpstreamError):
    code = "TIMEOUT"


class ConfigurationError(MovieServiceError):
    code = "CONFIGURATION_ERROR"
