from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NETWORK = "network"
    SERVER_REJECTED = "server_rejected"
    SERVER_ERROR = "server_error"
    DECODE = "decode"


# Wire models

class ValidationRequest(BaseModel):
    """
    A license/application pair that passed input validation.
    """
    model_config = ConfigDict(frozen=True)

    license: UUID
    application: str = Field(min_length=1)


class ValidateResponse(BaseModel):
    success: Any
    token: str


class ApiErrorPayload(BaseModel):
    error: str
    reason: Optional[str] = None
    message: Optional[str] = None

    @property
    def detail(self) -> str:
        return self.message or self.error


# Validation outcome

class Success(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str


class Failure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    detail: str
    reason: Optional[str] = None
    status_code: Optional[int] = None


ValidationOutcome = Union[Success, Failure]


# Local service models

class LicenseValidationRequest(BaseModel):
    license: str
    application: str

class LicenseValidationResponse(BaseModel):
    valid: bool
    token: Optional[str] = None

class HealthCheckResponse(BaseModel):
    status: str
    service: str
    version: str
    licenseApiUrl: Optional[str] = None
