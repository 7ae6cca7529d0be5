from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import invalid_input
from .retry import RetryPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # License Server Configuration
    LICENSE_API_URL: str = "http://localhost:4000/api"
    LICENSE_API_TIMEOUT: float = 30
    LICENSE_VALIDATE_PATH: str = "/subscriptions/validateapp"

    # Retry Configuration
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 0.5  # seconds
    RETRY_MAX_DELAY: float = 8.0   # seconds
    RETRY_JITTER: float = 0.2      # fraction of the computed delay

    # Local Service
    SERVICE_HOST: str = "0.0.0.0"
    SERVICE_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.RETRY_MAX_ATTEMPTS,
            base_delay=self.RETRY_BASE_DELAY,
            max_delay=self.RETRY_MAX_DELAY,
            jitter=self.RETRY_JITTER,
        )

settings = Settings()


class ClientConfig(BaseModel):
    """
    Immutable connection settings shared by every call made through a client.
    """
    model_config = ConfigDict(frozen=True)

    base_url: str
    validate_path: str = "/subscriptions/validateapp"
    timeout: float = Field(default=30.0, gt=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("base URL must not be empty")
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"malformed base URL {value!r}: {e}") from e
        if not url.is_absolute_url or url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"base URL must be an absolute http(s) URL, got {value!r}")
        return value.rstrip("/")

    @field_validator("validate_path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        return "/" + value.strip().strip("/")

    @property
    def validation_endpoint(self) -> str:
        return f"{self.base_url}{self.validate_path}"

    def with_url(self, url: str) -> "ClientConfig":
        """
        Return a copy pointing at ``url``; this instance is left untouched.
        """
        return resolve_config(
            url,
            validate_path=self.validate_path,
            timeout=self.timeout,
            retry=self.retry,
        )


def resolve_config(
    base_url: str,
    validate_path: Optional[str] = None,
    timeout: Optional[float] = None,
    retry: Optional[RetryPolicy] = None,
) -> ClientConfig:
    """
    Validate the inputs and build a ``ClientConfig``.

    Unset values fall back to the environment settings. Any validation
    problem is reported as an invalid-input ``LicenseValidationError``.
    """
    if not isinstance(base_url, str):
        raise invalid_input(f"base URL must be a string, got {type(base_url).__name__}")
    try:
        return ClientConfig(
            base_url=base_url,
            validate_path=validate_path if validate_path is not None else settings.LICENSE_VALIDATE_PATH,
            timeout=timeout if timeout is not None else settings.LICENSE_API_TIMEOUT,
            retry=retry if retry is not None else settings.retry_policy(),
        )
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise invalid_input(messages) from e
