"""Dispatch of one completion call, raced against a deadline and user cancellation."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

from ..models import Message
from .ai_service import RemoteError

logger = logging.getLogger(__name__)

CompletionFn = Callable[[str, Sequence[Message]], str]


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    REMOTE_ERROR = "remote_error"
    TIMEOUT = "timeout"
    CANCELED = "canceled"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    text: str = ""
    error: Exception | None = None
    timeout: float = 0.0
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def message(self) -> str:
        """User-facing description of a failed outcome."""
        if self.kind is OutcomeKind.TIMEOUT:
            return f"request timed out after {self.timeout:g}s"
        if self.kind is OutcomeKind.CANCELED:
            return "canceled"
        if self.error is not None:
            return str(self.error)
        return ""


@dataclass(frozen=True)
class PendingCall:
    history: tuple[Message, ...]
    started_at: float
    deadline: float


def _settle(result: asyncio.Future[str], text: str | None, error: BaseException | None) -> None:
    if result.done():
        return
    if error is not None:
        result.set_exception(error)
    else:
        result.set_result(text or "")


def _log_late_result(result: asyncio.Future[str]) -> None:
    if result.cancelled():
        return
    if result.exception() is not None:
        logger.debug("Discarding late error from abandoned dispatch: %s", result.exception())
    else:
        logger.debug("Discarding late reply from abandoned dispatch (%d chars)", len(result.result()))


class Gateway:
    """Runs the blocking completion call on a worker thread.

    ``dispatch()`` waits on three sources at once: the worker's result, the
    deadline, and the cancel event. Whichever resolves first decides the
    outcome; a result that is already available wins over the other two.
    A worker whose call is abandoned keeps running in the background and its
    result is dropped.
    """

    def __init__(self, completion: CompletionFn, model: str, timeout: float) -> None:
        self._completion = completion
        self._model = model
        self._timeout = float(timeout)
        self._pending: PendingCall | None = None

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def pending(self) -> PendingCall | None:
        return self._pending

    async def dispatch(
        self,
        history: Sequence[Message],
        cancel_event: asyncio.Event | None = None,
    ) -> Outcome:
        if self._pending is not None:
            raise RuntimeError("a dispatch is already outstanding")

        loop = asyncio.get_running_loop()
        started = loop.time()
        pending = PendingCall(history=tuple(history), started_at=started, deadline=started + self._timeout)
        self._pending = pending
        logger.debug("Dispatching to %s with %d message(s)", self._model, len(pending.history))

        result: asyncio.Future[str] = loop.create_future()
        worker = threading.Thread(
            target=self._run_worker,
            args=(loop, result, pending.history),
            name="chatcli-dispatch",
            daemon=True,
        )
        worker.start()

        wait_tasks: list[asyncio.Future[Any]] = [result]
        cancel_wait: asyncio.Future[Any] | None = None
        if cancel_event is not None:
            cancel_wait = asyncio.ensure_future(cancel_event.wait())
            wait_tasks.append(cancel_wait)

        try:
            await asyncio.wait(
                wait_tasks,
                timeout=max(0.0, pending.deadline - loop.time()),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()
            self._pending = None
            if not result.done():
                result.add_done_callback(_log_late_result)

        outcome = self._resolve(result, cancel_event, elapsed=loop.time() - started)
        logger.info("Dispatch finished: %s after %.2fs", outcome.kind.value, outcome.elapsed)
        return outcome

    def _resolve(
        self,
        result: asyncio.Future[str],
        cancel_event: asyncio.Event | None,
        elapsed: float,
    ) -> Outcome:
        # The result is checked first so a reply that is ready wins any tie.
        if result.done():
            error = result.exception()
            if error is None:
                text = result.result()
                if text.strip():
                    return Outcome(OutcomeKind.SUCCESS, text=text, elapsed=elapsed)
                error = RemoteError("empty response")
            if not isinstance(error, RemoteError):
                error = RemoteError(f"unexpected error: {error}")
            return Outcome(OutcomeKind.REMOTE_ERROR, error=error, elapsed=elapsed)
        if cancel_event is not None and cancel_event.is_set():
            return Outcome(OutcomeKind.CANCELED, elapsed=elapsed)
        return Outcome(OutcomeKind.TIMEOUT, timeout=self._timeout, elapsed=elapsed)

    def _run_worker(
        self,
        loop: asyncio.AbstractEventLoop,
        result: asyncio.Future[str],
        history: tuple[Message, ...],
    ) -> None:
        text: str | None = None
        error: BaseException | None = None
        try:
            text = self._completion(self._model, history)
        except Exception as e:
            if not isinstance(e, RemoteError):
                logger.debug("Completion call raised an unexpected error", exc_info=True)
            error = e
        try:
            loop.call_soon_threadsafe(_settle, result, text, error)
        except RuntimeError:
            # Event loop already closed: the session ended while the call was in flight.
            logger.debug("Dropping dispatch result, event loop is closed")
