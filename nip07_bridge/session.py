"""Mutex-guarded state of a single bridge session."""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .completion import Completion, OperationSupersededError, SessionClosedError
from .logs import log_event
from .models import PAYLOAD_TYPES, Mode, OperationPayload, ShutdownResponse, StateResponse

LOGGER = logging.getLogger(__name__)


@dataclass
class Operation:
    mode: Mode
    payload: OperationPayload
    completion: Completion = field(default_factory=Completion)
    request_id: str = field(default_factory=lambda: secrets.token_hex(4))


class SessionState:
    """Holds the active operation and the shutdown flag.

    Only :meth:`begin` (CLI side) and the settle/abort methods (HTTP and
    shutdown side) mutate the state. Each mutation happens under one lock that
    is never held across I/O. When no operation is active the mode is idle and
    there is no payload.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._operation: Optional[Operation] = None
        self._should_close = False

    # Reads -------------------------------------------------------------
    @property
    def mode(self) -> Mode:
        with self._lock:
            return self._operation.mode if self._operation else Mode.IDLE

    @property
    def operation(self) -> Optional[Operation]:
        with self._lock:
            return self._operation

    @property
    def should_close(self) -> bool:
        with self._lock:
            return self._should_close

    def snapshot(self) -> StateResponse:
        with self._lock:
            if self._operation is None:
                return StateResponse()
            return StateResponse(
                mode=self._operation.mode,
                data=self._operation.payload.to_wire(),
                id=self._operation.request_id,
            )

    def shutdown_status(self) -> ShutdownResponse:
        return ShutdownResponse(shouldClose=self.should_close)

    # Transitions -------------------------------------------------------
    def begin(self, mode: Mode, payload: OperationPayload) -> Operation:
        if mode is Mode.IDLE:
            raise ValueError("Cannot begin an idle operation")
        expected = PAYLOAD_TYPES[mode]
        if not isinstance(payload, expected):
            raise TypeError(
                f"{mode.value} expects {expected.__name__}, got {type(payload).__name__}"
            )
        operation = Operation(mode=mode, payload=payload)
        with self._lock:
            if self._should_close:
                raise SessionClosedError()
            previous, self._operation = self._operation, operation
        if previous is not None and previous.completion.reject(OperationSupersededError()):
            log_event(
                LOGGER,
                "Bridge",
                previous.mode.value,
                "superseded",
                previous.request_id,
                level=logging.WARNING,
                replaced_by=operation.request_id,
            )
        return operation

    def resolve(self, modes: Iterable[Mode], value: Any) -> Optional[Operation]:
        return self._settle(modes, lambda completion: completion.resolve(value))

    def reject(self, modes: Iterable[Mode], error: BaseException) -> Optional[Operation]:
        return self._settle(modes, lambda completion: completion.reject(error))

    def _settle(self, modes: Iterable[Mode], settle) -> Optional[Operation]:
        """Settle the active operation if its mode is one of ``modes``."""
        accepted = frozenset(modes)
        with self._lock:
            operation = self._operation
            if operation is None or operation.mode not in accepted:
                return None
            if not settle(operation.completion):
                return None
            self._operation = None
        return operation

    def request_close(self) -> bool:
        with self._lock:
            if self._should_close:
                return False
            self._should_close = True
            return True

    def abort(
        self,
        error: Optional[BaseException] = None,
        *,
        operation: Optional[Operation] = None,
    ) -> Optional[Operation]:
        """Force the state back to idle, rejecting an unsettled completion.

        With ``operation`` given, only that operation is discarded; a newer one
        is left alone.
        """
        with self._lock:
            current = self._operation
            if current is None or (operation is not None and current is not operation):
                return None
            self._operation = None
        if current.completion.reject(error or SessionClosedError()):
            return current
        return None
