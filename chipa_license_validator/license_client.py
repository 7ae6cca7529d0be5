import concurrent.futures
import logging
from typing import Any, Optional

import httpx

from .bridge import LoopThread, Settlement, failed_future, run_awaitable, submit
from .codec import build_request
from .config import ClientConfig, resolve_config, settings
from .container import ChipaFile, PathLike
from .errors import LicenseValidationError
from .models import ValidationOutcome, ValidationRequest
from .retry import RetryEngine, RetryPolicy
from .transport import HttpTransport

logger = logging.getLogger(__name__)


class LicenseClient:
    """
    A client for validating licenses against the Chipa License Server.

    Instances are immutable: ``set_url`` returns a new client and the old one
    keeps talking to its original server. Calls share nothing but that
    configuration, so any number of them may run at once.

    Example::

        client = LicenseClient("https://license.example.com")
        try:
            token = await client.validate_license(
                "550e8400-e29b-41d4-a716-446655440000", "my-application"
            )
        except LicenseValidationError as e:
            print(f"License validation failed: {e}")

    Code without an event loop can use ``validate_license_blocking`` or
    ``submit``, which run the same call on a background loop thread.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
        validate_path: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        loop_thread: Optional[LoopThread] = None,
    ):
        config = resolve_config(
            base_url, validate_path=validate_path, timeout=timeout, retry=retry_policy
        )
        self._init(config, transport, loop_thread)

    def _init(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport],
        loop_thread: Optional[LoopThread],
    ):
        self._config = config
        self._transport = transport
        self._loop_thread = loop_thread
        self._engine = RetryEngine(HttpTransport(config.timeout, transport), config.retry)

    @classmethod
    def from_settings(cls, **kwargs) -> "LicenseClient":
        """
        Build a client from the ``LICENSE_API_*`` and ``RETRY_*`` settings.
        """
        return cls(settings.LICENSE_API_URL, **kwargs)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def set_url(self, url: str) -> "LicenseClient":
        """
        Return a new client pointing at ``url``, keeping every other setting.

        Raises:
            LicenseValidationError: if ``url`` is empty or not an absolute http(s) URL
        """
        client = object.__new__(type(self))
        client._init(self._config.with_url(url), self._transport, self._loop_thread)
        return client

    async def _validate(self, request: ValidationRequest, settlement: Settlement) -> ValidationOutcome:
        return await self._engine.run(self._config.validation_endpoint, request, settlement)

    async def validate_license(self, license: str, application: str) -> str:
        """
        Validate ``license`` for ``application`` and return the server's token.

        The token is opaque; it is returned exactly as the server sent it.

        Raises:
            LicenseValidationError: if the license is not a UUID, the
                application is empty, the server cannot be reached, or the
                server rejects the license (expired, invalid, unauthorized
                application)
        """
        request = build_request(license, application)
        return await run_awaitable(lambda settlement: self._validate(request, settlement))

    def submit(self, license: str, application: str) -> "concurrent.futures.Future[str]":
        """
        Start a validation from synchronous code.

        Returns a ``concurrent.futures.Future`` that yields the token or raises
        ``LicenseValidationError``. Cancelling the future stops any further
        retries. Invalid input yields an already failed future.
        """
        try:
            request = build_request(license, application)
        except LicenseValidationError as e:
            return failed_future(e)
        return submit(lambda settlement: self._validate(request, settlement), self._loop_thread)

    def validate_license_blocking(
        self, license: str, application: str, timeout: Optional[float] = None
    ) -> str:
        """
        Blocking counterpart of ``validate_license``.

        Must not be called from a running event loop's thread. When ``timeout``
        elapses the call is cancelled and ``TimeoutError`` is raised.
        """
        future = self.submit(license, application)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    async def save_file(self, path: PathLike, data: Any, license: str, application: str) -> ChipaFile:
        """
        Validate the license, then store ``data`` in an encrypted ``.chipa``
        file keyed by the returned token.
        """
        container = ChipaFile.new(data)
        token = await self.validate_license(license, application)
        container.save(path, token)
        return container

    async def load_file(self, path: PathLike, license: str, application: str) -> ChipaFile:
        """
        Validate the license, then open a ``.chipa`` file written by ``save_file``.

        The server must hand out the same token it did when the file was
        saved; otherwise ``DecryptionError`` is raised.
        """
        token = await self.validate_license(license, application)
        return ChipaFile.load(path, token)

    async def aclose(self) -> None:
        """
        Close the transport passed to the constructor, if any. Clients made
        with ``set_url`` share it, so close it once, after the last call.
        """
        await self._engine.transport.aclose()

    async def __aenter__(self) -> "LicenseClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"LicenseClient(base_url={self._config.base_url!r})"
