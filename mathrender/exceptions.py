"""
Base exception classes for the mathrender service.

Every externally visible failure of a render request is a ``RenderError``.
Its ``to_envelope`` output is the uniform JSON error body returned by both
the HTTP API and the batch runner.
"""

from typing import Any


class BaseServiceError(Exception):
    """Base exception for all service errors."""

    def __init__(self, message: str, error_type: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_type = error_type
        self.details = details or {}


# Common error types for consistency
class ErrorTypes:
    """Common error type constants."""

    MISSING_QUERY = "MISSING_QUERY"
    UNRECOGNIZED_TYPE = "UNRECOGNIZED_TYPE"
    UNRECOGNIZED_FORMAT = "UNRECOGNIZED_FORMAT"
    FORMAT_DISABLED = "FORMAT_DISABLED"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    MISSING_MATHML = "MISSING_MATHML"
    NO_SUITABLE_OUTPUT = "NO_SUITABLE_OUTPUT"
    RASTERIZATION_FAILED = "RASTERIZATION_FAILED"
    TYPESET_FAILED = "TYPESET_FAILED"
    INVALID_REQUEST = "INVALID_REQUEST"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RenderError(BaseServiceError):
    """
    A fatal render request error.

    Carries everything needed to build the error envelope: HTTP status,
    title, kind tag, human readable detail and the raw message.
    """

    status: int = 400
    title: str = "Bad Request"

    def __init__(
        self,
        message: str,
        error_type: str,
        detail: str | None = None,
        feedback: dict[str, Any] | None = None,
        status: int | None = None,
    ):
        super().__init__(message, error_type, {"feedback": feedback} if feedback else None)
        self.detail = detail if detail is not None else message
        self.feedback = feedback
        if status is not None:
            self.status = status

    def to_envelope(self) -> dict[str, Any]:
        """Return the uniform error envelope for this error."""
        envelope: dict[str, Any] = {
            "status": self.status,
            "success": False,
            "title": self.title,
            "type": self.error_type,
            "detail": self.detail,
            "error": str(self),
        }
        if self.feedback is not None:
            envelope["feedback"] = self.feedback
        return envelope


class MissingQueryError(RenderError):
    """Raised when no markup was supplied."""

    def __init__(self, message: str = "q (query) parameter is missing!"):
        super().__init__(message, ErrorTypes.MISSING_QUERY)


class UnrecognizedTypeError(RenderError):
    """Raised when the input type is not one of the known aliases."""

    def __init__(self, input_type: str):
        super().__init__(f'Input format "{input_type}" is not recognized!', ErrorTypes.UNRECOGNIZED_TYPE)


class UnrecognizedFormatError(RenderError):
    """Raised when the output format is not one of the known aliases."""

    def __init__(self, output_format: str):
        super().__init__(f'Output format "{output_format}" is not recognized!', ErrorTypes.UNRECOGNIZED_FORMAT)


class FormatDisabledError(RenderError):
    """Raised when the output format needs a capability switched off in the configuration."""

    def __init__(self, output_format: str, flag: str):
        super().__init__(
            f"Output format {output_format} is disabled via config, "
            f'try setting "{flag}: true" to enable {output_format} rendering.',
            ErrorTypes.FORMAT_DISABLED,
        )
        self.flag = flag


class TypeMismatchError(RenderError):
    """Raised when the output format does not accept the given input type."""

    def __init__(self, output_format: str, accepted: str, input_type: str):
        super().__init__(
            f'{output_format} accepts only {accepted} as the input type, "{input_type}" given!',
            ErrorTypes.TYPE_MISMATCH,
        )


class ValidationFailedError(RenderError):
    """Raised when the TeX checker rejects the input."""

    def __init__(self, message: str, feedback: dict[str, Any]):
        super().__init__(message, ErrorTypes.VALIDATION_FAILED, detail=message, feedback=feedback)


class TypesetFailedError(RenderError):
    """Raised when the typesetting engine reports errors."""

    def __init__(self, errors: list[str]):
        super().__init__("\n".join(errors), ErrorTypes.TYPESET_FAILED)
        self.errors = errors


class MissingMathMLError(RenderError):
    """Raised when speech was requested but no MathML was produced."""

    status = 500
    title = "Internal Server Error"

    def __init__(self):
        super().__init__(
            "No MathML found. Please check the typesetting engine configuration",
            ErrorTypes.MISSING_MATHML,
        )


class NoSuitableOutputError(RenderError):
    """Raised when no output exists that a stage (or the response) can use."""

    status = 500
    title = "Internal Server Error"

    def __init__(self, message: str = "No suitable output found. Please check the typesetting engine configuration"):
        super().__init__(message, ErrorTypes.NO_SUITABLE_OUTPUT)


class RasterizationFailedError(RenderError):
    """Raised when the raster stage recorded an error."""

    status = 500
    title = "Internal Server Error"

    def __init__(self, message: str):
        super().__init__(message, ErrorTypes.RASTERIZATION_FAILED)


class ServiceTimeoutError(BaseServiceError):
    """Raised when an external tool times out."""

    def __init__(self, timeout_seconds: int):
        super().__init__(
            f"Service operation timed out after {timeout_seconds} seconds",
            ErrorTypes.TIMEOUT_ERROR,
            {"timeout_seconds": timeout_seconds}
        )
