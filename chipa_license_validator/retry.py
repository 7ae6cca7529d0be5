"""
Bounded exponential backoff around single-shot transport attempts.

Attempts for one validation call run strictly one after another. Each
failed attempt is classified as retryable (network trouble, 5xx, 408/429)
or terminal; terminal outcomes and the outcome of the last permitted
attempt are returned to the caller as data.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .codec import encode_headers, encode_request, parse_response
from .models import ErrorKind, Failure, Success, ValidationOutcome, ValidationRequest
from .transport import RawResponse, TransportError

if TYPE_CHECKING:
    from .bridge import Settlement
    from .transport import HttpTransport

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429})


class RetryPolicy(BaseModel):
    """Tuneable parameters for retry behaviour."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Total number of transport attempts, the first one included.",
    )
    base_delay: float = Field(
        default=0.5,
        gt=0.0,
        description="Delay in seconds before the first retry.",
    )
    max_delay: float = Field(
        default=8.0,
        gt=0.0,
        description="Upper bound on any single delay in seconds.",
    )
    jitter: float = Field(
        default=0.2,
        ge=0.0,
        le=0.3,
        description="Random spread applied to each delay, as a fraction of it.",
    )


@dataclass
class RetryState:
    attempt: int = 0
    next_backoff: float = 0.0


def compute_delay(retry: int, policy: RetryPolicy, rng: Optional[random.Random] = None) -> float:
    """Return the backoff before retry number *retry* (0-based)."""
    delay = policy.base_delay * (2 ** retry)
    if policy.jitter:
        delay *= 1 + (rng or random).uniform(-policy.jitter, policy.jitter)  # noqa: S311
    return min(delay, policy.max_delay)


def classify(raw: RawResponse) -> Tuple[ValidationOutcome, bool]:
    """Return the outcome of one HTTP response and whether it is worth retrying."""
    if raw.status_code >= 500 or raw.status_code in RETRYABLE_STATUS_CODES:
        failure = Failure(
            kind=ErrorKind.SERVER_ERROR,
            detail=f"license server responded with HTTP {raw.status_code}",
            status_code=raw.status_code,
        )
        return failure, True
    return parse_response(raw), False


def _short(request: ValidationRequest) -> str:
    return str(request.license)[:8]


class RetryEngine:
    """
    Drives transport attempts for validation calls.

    The engine holds no per-call state; a fresh ``RetryState`` is created
    for every ``run`` so any number of calls may share one engine.
    """

    def __init__(
        self,
        transport: "HttpTransport",
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.transport = transport
        self.policy = policy
        self._sleep = sleep
        self._rng = rng

    async def _attempt(self, endpoint: str, request: ValidationRequest) -> Tuple[ValidationOutcome, bool]:
        try:
            raw = await self.transport.send(endpoint, encode_request(request), encode_headers(request))
        except TransportError as e:
            return Failure(kind=ErrorKind.NETWORK, detail=str(e)), True
        return classify(raw)

    async def run(
        self,
        endpoint: str,
        request: ValidationRequest,
        settlement: Optional["Settlement"] = None,
    ) -> ValidationOutcome:
        state = RetryState()

        while True:
            if settlement is not None and settlement.cancelled:
                logger.debug("Validation of %s... cancelled before attempt %d", _short(request), state.attempt + 1)
                raise asyncio.CancelledError()

            state.attempt += 1
            logger.debug(
                "Attempt %d/%d validating license %s... for %r",
                state.attempt,
                self.policy.max_attempts,
                _short(request),
                request.application,
            )
            outcome, retryable = await self._attempt(endpoint, request)

            if isinstance(outcome, Success):
                logger.info("License %s... validated for %r", _short(request), request.application)
                return outcome

            if not retryable or state.attempt >= self.policy.max_attempts:
                logger.warning(
                    "License %s... validation failed after %d attempt(s): %s",
                    _short(request),
                    state.attempt,
                    outcome.detail,
                )
                return outcome

            state.next_backoff = compute_delay(state.attempt - 1, self.policy, self._rng)
            logger.warning(
                "Retry %d/%d after %.2fs: %s",
                state.attempt,
                self.policy.max_attempts - 1,
                state.next_backoff,
                outcome.detail,
            )
            await self._sleep(state.next_backoff)
