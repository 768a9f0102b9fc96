from enum import Enum


class ErrorKind(str, Enum):
    BAD_REQUEST = "BadRequest"
    INVALID_INPUT_FORMAT = "InvalidInputFormat"
    MISSING_PARAMETER = "MissingParameter"
    CONVERSION_FAILED = "ConversionFailed"
    CONVERSION_TIMED_OUT = "ConversionTimedOut"
    AUTHENTICATION_FAILED = "AuthenticationFailed"


class PipelineError(Exception):
    """Base exception for every failure the pipeline reports to a client.

    ``verbatim`` errors are returned to the caller as their bare message;
    all others are rendered as a diagnostic block by the controller.
    """
    kind: ErrorKind = ErrorKind.BAD_REQUEST
    verbatim: bool = False

    def __init__(self, message: str, verbatim: bool = None):
        super().__init__(message)
        self.message = message
        if verbatim is not None:
            self.verbatim = verbatim


class BadRequest(PipelineError):
    kind = ErrorKind.BAD_REQUEST
    verbatim = True


class MissingParameter(PipelineError):
    kind = ErrorKind.MISSING_PARAMETER
    verbatim = True


class InvalidInputFormat(PipelineError):
    """Raised when a payload cannot be parsed as the expected document type."""
    kind = ErrorKind.INVALID_INPUT_FORMAT


class ConversionFailed(PipelineError):
    kind = ErrorKind.CONVERSION_FAILED


class ConversionTimedOut(PipelineError):
    kind = ErrorKind.CONVERSION_TIMED_OUT


class AuthenticationFailed(PipelineError):
    kind = ErrorKind.AUTHENTICATION_FAILED

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
