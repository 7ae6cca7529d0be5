"""
Chipa License Validator

Client for validating license identifiers against the Chipa License Server.
A successful validation yields an opaque token; every failure surfaces as a
LicenseValidationError. Validation is usable from asyncio code
(``await client.validate_license(...)``) and from plain threads
(``client.validate_license_blocking(...)`` / ``client.submit(...)``).
"""

__version__ = "0.1.0"

from .container import ChipaError, ChipaFile
from .errors import LicenseValidationError
from .license_client import LicenseClient
from .models import ErrorKind
from .retry import RetryPolicy

__all__ = [
    "ChipaError",
    "ChipaFile",
    "ErrorKind",
    "LicenseClient",
    "LicenseValidationError",
    "RetryPolicy",
    "__version__",
]
