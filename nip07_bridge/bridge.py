"""Local HTTP bridge that delegates signing and encryption to a NIP-07 extension."""

from __future__ import annotations

import asyncio
import logging
import secrets
import socket
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from flask import Flask
from werkzeug.serving import BaseWSGIServer, make_server

from .app import create_app
from .completion import BridgeError, SessionClosedError
from .config import BridgeSettings
from .launcher import BrowserLauncher
from .logs import log_event
from .models import (
    DecryptRequest,
    EncryptRequest,
    Event,
    Mode,
    OperationPayload,
    PublicKeyRequest,
    SignRequest,
)
from .session import SessionState

LOGGER = logging.getLogger(__name__)

COMPONENT = "Bridge"


class BridgeStartupError(BridgeError):
    pass


def _session_url(host: str, port: int) -> str:
    if host in ("127.0.0.1", "localhost"):
        return f"http://localhost:{port}/"
    if ":" in host:
        return f"http://[{host}]:{port}/"
    return f"http://{host}:{port}/"


def _describe(payload: OperationPayload) -> Dict[str, Any]:
    if isinstance(payload, SignRequest):
        kinds = sorted({str(event.get("kind")) for event in payload.events})
        return {"event_count": len(payload.events), "kinds": ",".join(kinds)}
    if isinstance(payload, EncryptRequest):
        return {"peer": payload.pubkey, "plaintext_length": len(payload.plaintext)}
    if isinstance(payload, DecryptRequest):
        return {"peer": payload.pubkey, "ciphertext_length": len(payload.ciphertext)}
    return {}


class NIP07Bridge:
    """Serves the signer page on loopback and waits for the browser's results.

    Each operation puts the session into its mode, makes sure a browser tab is
    open, and suspends until the page posts a result or the bridge is closed.
    Only one operation runs at a time; starting another supersedes it.
    """

    def __init__(self, settings: Optional[BridgeSettings] = None) -> None:
        self.settings = settings or BridgeSettings()
        self._session = SessionState()
        self.app: Flask = create_app(self._session, self.settings)
        self._server: Optional[BaseWSGIServer] = None
        self._thread: Optional[threading.Thread] = None
        self._port: Optional[int] = None
        self._launcher: Optional[BrowserLauncher] = None
        self._stopped = threading.Event()

    # Lifecycle ---------------------------------------------------------
    @classmethod
    async def start(cls, settings: Optional[BridgeSettings] = None) -> "NIP07Bridge":
        bridge = cls(settings)
        await bridge._open()
        return bridge

    @classmethod
    @asynccontextmanager
    async def running(cls, settings: Optional[BridgeSettings] = None) -> AsyncIterator["NIP07Bridge"]:
        bridge = await cls.start(settings)
        try:
            yield bridge
        finally:
            await bridge.close()

    async def __aenter__(self) -> "NIP07Bridge":
        if self._server is None:
            await self._open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _open(self) -> None:
        self._listen()
        try:
            await self._launcher.open()
        except BaseException:
            self._stop_server()
            raise

    def _listen(self) -> None:
        host, port = self.settings.host, self.settings.port
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        try:
            sock = socket.create_server((host, port), family=family)
        except OSError as exc:
            raise BridgeStartupError(
                f"Could not listen on {host}:{port}: {exc.strerror or exc}"
            ) from exc
        try:
            self._port = sock.getsockname()[1]
            # werkzeug serves on a dup of the already bound descriptor.
            self._server = make_server(host, self._port, self.app, threaded=True, fd=sock.fileno())
        finally:
            sock.close()

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name=f"nip07-bridge-{self._port}",
            daemon=True,
        )
        self._thread.start()
        self._launcher = BrowserLauncher(
            self.url,
            enabled=self.settings.open_browser,
            delay=self.settings.browser_open_delay,
        )
        log_event(LOGGER, COMPONENT, "session", "start", secrets.token_hex(4), url=self.url)

    def _stop_server(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._stopped.set()

    async def close(self) -> None:
        """Ask the page to close itself, fail pending work, stop the listener.

        Safe to call more than once; later calls return once the first close
        has finished.
        """
        loop = asyncio.get_running_loop()
        if not self._session.request_close():
            await loop.run_in_executor(None, self._stopped.wait)
            return

        req_id = secrets.token_hex(4)
        log_event(LOGGER, COMPONENT, "session", "close.start", req_id, grace=self.settings.shutdown_grace)
        await asyncio.sleep(self.settings.shutdown_grace)

        aborted = self._session.abort(SessionClosedError())
        if aborted is not None:
            log_event(
                LOGGER,
                COMPONENT,
                "session",
                "close.aborted",
                req_id,
                level=logging.WARNING,
                mode=aborted.mode.value,
                operation=aborted.request_id,
            )
        if self._launcher is not None:
            self._launcher.reset()
        await loop.run_in_executor(None, self._stop_server)
        log_event(LOGGER, COMPONENT, "session", "close.success", req_id)

    # Properties --------------------------------------------------------
    @property
    def port(self) -> int:
        if self._port is None:
            raise BridgeError("Bridge is not listening")
        return self._port

    @property
    def url(self) -> str:
        return _session_url(self.settings.host, self.port)

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def mode(self) -> Mode:
        return self._session.mode

    @property
    def closed(self) -> bool:
        return self._stopped.is_set()

    # Operations --------------------------------------------------------
    async def get_public_key(self) -> str:
        return await self._run(Mode.PUBLIC_KEY, PublicKeyRequest())

    async def sign_events(self, events: Sequence[Event]) -> List[Event]:
        return await self._run(Mode.SIGN, SignRequest(events=list(events)))

    async def nip04_encrypt(self, pubkey: str, plaintext: str) -> str:
        return await self._run(Mode.NIP04_ENCRYPT, EncryptRequest(pubkey=pubkey, plaintext=plaintext))

    async def nip04_decrypt(self, pubkey: str, ciphertext: str) -> str:
        return await self._run(Mode.NIP04_DECRYPT, DecryptRequest(pubkey=pubkey, ciphertext=ciphertext))

    async def nip44_encrypt(self, pubkey: str, plaintext: str) -> str:
        return await self._run(Mode.NIP44_ENCRYPT, EncryptRequest(pubkey=pubkey, plaintext=plaintext))

    async def nip44_decrypt(self, pubkey: str, ciphertext: str) -> str:
        return await self._run(Mode.NIP44_DECRYPT, DecryptRequest(pubkey=pubkey, ciphertext=ciphertext))

    async def _run(self, mode: Mode, payload: OperationPayload) -> Any:
        if self._server is None:
            raise BridgeError("Bridge is not listening; use NIP07Bridge.start() or async with")
        operation = self._session.begin(mode, payload)
        log_event(LOGGER, COMPONENT, mode.value, "start", operation.request_id, **_describe(payload))
        try:
            await self._launcher.open()
            return await operation.completion.wait()
        except asyncio.CancelledError:
            self._session.abort(operation=operation)
            raise
