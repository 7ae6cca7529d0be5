import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .errors import LicenseValidationError
from .license_client import LicenseClient
from .models import (
    ErrorKind,
    HealthCheckResponse,
    LicenseValidationRequest,
    LicenseValidationResponse,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Chipa License Validator Service",
    description="Local license validation against the Chipa License Server",
    version=__version__
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.SERVER_REJECTED: 403,
    ErrorKind.NETWORK: 502,
    ErrorKind.SERVER_ERROR: 502,
    ErrorKind.DECODE: 502,
}

def _http_error(e: LicenseValidationError, status_code: int) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"kind": e.kind.value, "reason": e.reason, "message": str(e)}
    )

def get_client() -> LicenseClient:
    try:
        return LicenseClient.from_settings()
    except LicenseValidationError as e:
        # Bad LICENSE_API_URL: the service, not the caller, is misconfigured.
        logger.error("Cannot build license client from settings: %s", e)
        raise _http_error(e, 502)

# API Endpoints
@app.post("/api/license/validate", response_model=LicenseValidationResponse)
async def validate_license(
    request: LicenseValidationRequest,
    client: LicenseClient = Depends(get_client)
):
    """
    Validate a license for an application with the license server.

    Returns the validation token on success. Failures are reported with
    the error kind, the server's reason code (when it sent one) and a
    readable message.
    """
    try:
        token = await client.validate_license(request.license, request.application)
    except LicenseValidationError as e:
        logger.info("Validation for %r rejected: %s", request.application, e)
        raise _http_error(e, _STATUS_BY_KIND[e.kind])

    return {"valid": True, "token": token}

@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """
    Health check endpoint for container orchestration.
    """
    return {
        "status": "healthy",
        "service": "license-validator",
        "version": __version__,
        "licenseApiUrl": settings.LICENSE_API_URL
    }

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    uvicorn.run(app, host=settings.SERVICE_HOST, port=settings.SERVICE_PORT)
