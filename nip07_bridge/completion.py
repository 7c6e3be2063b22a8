"""One-shot completions that hand a browser result back to the awaiting caller."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future, InvalidStateError
from typing import Any, Optional


class BridgeError(RuntimeError):
    pass


class CompletionError(BridgeError):
    """An operation finished without a result."""


class SessionClosedError(CompletionError):
    def __init__(self, message: str = "Server closed") -> None:
        super().__init__(message)


class OperationSupersededError(CompletionError):
    def __init__(self, message: str = "Operation superseded by a newer request") -> None:
        super().__init__(message)


class ExtensionError(CompletionError):
    """The page reported an error from the signing extension."""


class Completion:
    """Resolved or rejected at most once; later attempts are ignored.

    The HTTP handler threads settle the completion while the CLI side waits on
    it, either from an event loop via :meth:`wait` or from a plain thread via
    :meth:`result`.
    """

    def __init__(self) -> None:
        self._future: Future = Future()
        self._lock = threading.Lock()

    @property
    def done(self) -> bool:
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        with self._lock:
            if self._future.done():
                return False
            try:
                self._future.set_result(value)
            except InvalidStateError:  # cancelled by the waiter in between
                return False
            return True

    def reject(self, error: BaseException) -> bool:
        with self._lock:
            if self._future.done():
                return False
            try:
                self._future.set_exception(error)
            except InvalidStateError:
                return False
            return True

    async def wait(self) -> Any:
        return await asyncio.wrap_future(self._future)

    def result(self, timeout: Optional[float] = None) -> Any:
        return self._future.result(timeout)
