"""
Delivery of a validation call to asyncio callers and to plain threads.

Both paths wrap the same coroutine. A ``Settlement`` records the one
outcome a call is allowed to produce; once a caller gives up, the cell is
marked cancelled, the retry loop stops scheduling attempts, and anything
that still arrives is dropped.
"""

import asyncio
import concurrent.futures
import logging
import threading
from enum import Enum
from typing import Awaitable, Callable, Optional

from .errors import unwrap
from .models import ValidationOutcome

logger = logging.getLogger(__name__)

Operation = Callable[["Settlement"], Awaitable[ValidationOutcome]]


class SettlementState(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class Settlement:
    """
    Thread-safe single-assignment cell for the outcome of one call.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = SettlementState.PENDING
        self._outcome: Optional[ValidationOutcome] = None

    @property
    def state(self) -> SettlementState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._state is SettlementState.CANCELLED

    @property
    def outcome(self) -> Optional[ValidationOutcome]:
        return self._outcome

    def settle(self, outcome: ValidationOutcome) -> bool:
        """Store ``outcome`` unless the cell already left PENDING."""
        with self._lock:
            if self._state is not SettlementState.PENDING:
                return False
            self._outcome = outcome
            self._state = SettlementState.SETTLED
            return True

    def cancel(self) -> bool:
        with self._lock:
            if self._state is not SettlementState.PENDING:
                return False
            self._state = SettlementState.CANCELLED
            return True


async def _drive(operation: Operation, settlement: Settlement) -> str:
    try:
        outcome = await operation(settlement)
    except asyncio.CancelledError:
        settlement.cancel()
        raise
    if not settlement.settle(outcome):
        logger.debug("Discarding outcome that arrived after cancellation")
        raise asyncio.CancelledError()
    return unwrap(outcome)


async def run_awaitable(operation: Operation) -> str:
    """
    Run ``operation`` in the current event loop and return its token.

    Cancelling the awaiting task propagates into the in-flight request or
    backoff sleep; no later attempt is started.
    """
    return await _drive(operation, Settlement())


class LoopThread:
    """
    An asyncio event loop running forever on a daemon thread.

    Started on first use; shared by every client that is handed the same
    instance.
    """

    def __init__(self, name: str = "license-validator-loop"):
        self.name = name
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None or self._loop.is_closed():
                loop = asyncio.new_event_loop()
                ready = threading.Event()
                self._thread = threading.Thread(
                    target=self._run, args=(loop, ready), name=self.name, daemon=True
                )
                self._thread.start()
                ready.wait()
                self._loop = loop
                logger.debug("Started event loop thread %s", self.name)
            return self._loop

    @staticmethod
    def _run(loop: asyncio.AbstractEventLoop, ready: threading.Event):
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            loop.close()

    def stop(self, timeout: Optional[float] = 5.0):
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None or thread is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)
        logger.debug("Stopped event loop thread %s", self.name)


_default_loop_thread = LoopThread()


def default_loop_thread() -> LoopThread:
    return _default_loop_thread


def submit(operation: Operation, loop_thread: Optional[LoopThread] = None) -> "concurrent.futures.Future[str]":
    """
    Schedule ``operation`` on a background loop for callers outside asyncio.

    The returned future resolves to the token or raises
    ``LicenseValidationError``. Cancelling it stops further retries and
    cancels the task on the loop thread.
    """
    settlement = Settlement()
    loop = (loop_thread or _default_loop_thread).get_loop()
    future = asyncio.run_coroutine_threadsafe(_drive(operation, settlement), loop)

    def _on_done(done: "concurrent.futures.Future[str]"):
        if done.cancelled():
            settlement.cancel()

    future.add_done_callback(_on_done)
    return future


def failed_future(error: BaseException) -> "concurrent.futures.Future[str]":
    future: "concurrent.futures.Future[str]" = concurrent.futures.Future()
    future.set_exception(error)
    return future
