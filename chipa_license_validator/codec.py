"""
Request and response codecs for the license validation endpoint.
"""

import base64
import hashlib
import json
from typing import Any, Dict
from uuid import UUID

from pydantic import ValidationError

from .errors import invalid_input
from .models import (
    ApiErrorPayload,
    ErrorKind,
    Failure,
    Success,
    ValidateResponse,
    ValidationOutcome,
    ValidationRequest,
)
from .transport import RawResponse

AUTH_SCHEME = "License"
REJECTION_STATUS_CODES = frozenset({401, 403})


def build_request(license: str, application: str) -> ValidationRequest:
    """
    Validate a license/application pair.

    The license may use any textual form ``uuid.UUID`` accepts (hyphenated,
    bare hex, braced, ``urn:uuid:``). Raises an invalid-input
    ``LicenseValidationError`` otherwise, before anything touches the network.
    """
    if not isinstance(license, str):
        raise invalid_input(f"license must be a string, got {type(license).__name__}")
    if not isinstance(application, str):
        raise invalid_input(f"application must be a string, got {type(application).__name__}")

    try:
        license_id = UUID(license.strip())
    except ValueError:
        raise invalid_input(f"license {license!r} is not a valid UUID") from None

    if not application.strip():
        raise invalid_input("application must not be empty")

    return ValidationRequest(license=license_id, application=application)


def encode_request(request: ValidationRequest) -> Dict[str, Any]:
    return request.model_dump(mode="json")


def encode_headers(request: ValidationRequest) -> Dict[str, str]:
    """
    Per-request headers. The license travels in ``Authorization`` as a
    SHA-256 digest of its 16 raw bytes, so the server can match it against
    the licenses it issued without the identifier appearing in clear text.
    """
    digest = hashlib.sha256(request.license.bytes).digest()
    credential = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return {"Authorization": f"{AUTH_SCHEME} {credential}"}


def _undecodable(raw: RawResponse, detail: str) -> Failure:
    # 401/403 already say the server refused the license, body or not.
    if raw.status_code in REJECTION_STATUS_CODES:
        return Failure(
            kind=ErrorKind.SERVER_REJECTED,
            detail=f"license server refused the request (HTTP {raw.status_code})",
            status_code=raw.status_code,
        )
    return Failure(kind=ErrorKind.DECODE, detail=detail, status_code=raw.status_code)


def parse_response(raw: RawResponse) -> ValidationOutcome:
    """
    Turn a terminal HTTP response into a validation outcome.

    2xx bodies carrying a token succeed; error-shaped bodies (on any status)
    are server rejections, as is any 401/403; anything else is a decode
    failure.
    """
    if not raw.body:
        return _undecodable(raw, f"expected a response body, got none (HTTP {raw.status_code})")

    try:
        payload = json.loads(raw.body)
    except ValueError as e:
        return _undecodable(raw, f"response is not valid JSON (HTTP {raw.status_code}): {e}")

    if not isinstance(payload, dict):
        return _undecodable(raw, f"expected a JSON object, got {type(payload).__name__}")

    if 200 <= raw.status_code < 300 and "token" in payload:
        try:
            return Success(token=ValidateResponse.model_validate(payload).token)
        except ValidationError as e:
            return Failure(
                kind=ErrorKind.DECODE,
                detail=f"malformed success payload: {e.error_count()} invalid field(s)",
                status_code=raw.status_code,
            )

    try:
        error = ApiErrorPayload.model_validate(payload)
    except ValidationError:
        return _undecodable(raw, f"unrecognised response payload (HTTP {raw.status_code})")
    return Failure(
        kind=ErrorKind.SERVER_REJECTED,
        detail=error.detail,
        reason=error.reason,
        status_code=raw.status_code,
    )
