"""
Error mapping for license validation.

Every failure the client can produce, whether raised up front for bad input
or carried as a ``Failure`` value out of the retry loop, reaches the caller
as a single ``LicenseValidationError``.
"""

from typing import Optional

from .models import ErrorKind, Failure, Success, ValidationOutcome

_PREFIXES = {
    ErrorKind.INVALID_INPUT: "Invalid input",
    ErrorKind.NETWORK: "Request error",
    ErrorKind.SERVER_REJECTED: "Response error",
    ErrorKind.SERVER_ERROR: "Server error",
    ErrorKind.DECODE: "Parsing error",
}


class LicenseValidationError(Exception):
    """
    Raised when a license cannot be validated.

    ``kind`` tells the failure categories apart for diagnostics; callers
    that only care about success or failure can rely on ``str(error)``.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.INVALID_INPUT,
        reason: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.reason = reason
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"LicenseValidationError(kind={self.kind.value!r}, message={self.message!r})"


def invalid_input(detail: str) -> LicenseValidationError:
    return LicenseValidationError(
        f"{_PREFIXES[ErrorKind.INVALID_INPUT]}: {detail}", ErrorKind.INVALID_INPUT
    )


def error_from_failure(failure: Failure) -> LicenseValidationError:
    """
    Build the externally visible error for a terminal failure.
    """
    message = f"{_PREFIXES[failure.kind]}: {failure.detail}"
    if failure.reason:
        message = f"{message} ({failure.reason})"
    return LicenseValidationError(
        message,
        kind=failure.kind,
        reason=failure.reason,
        status_code=failure.status_code,
    )


def unwrap(outcome: ValidationOutcome) -> str:
    """
    Return the token of a successful outcome or raise its mapped error.
    """
    if isinstance(outcome, Success):
        return outcome.token
    raise error_from_failure(outcome)
