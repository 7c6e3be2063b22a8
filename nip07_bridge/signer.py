"""Convenience wrappers that run bridge operations for callers."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from .bridge import NIP07Bridge
from .config import BridgeSettings
from .models import CIPHER_MODES, Event, Mode

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_CIPHER_METHODS = {
    Mode.NIP04_ENCRYPT: "nip04_encrypt",
    Mode.NIP04_DECRYPT: "nip04_decrypt",
    Mode.NIP44_ENCRYPT: "nip44_encrypt",
    Mode.NIP44_DECRYPT: "nip44_decrypt",
}


async def _one_shot(
    settings: Optional[BridgeSettings],
    operation: Callable[[NIP07Bridge], Awaitable[T]],
) -> T:
    async with NIP07Bridge.running(settings) as bridge:
        return await operation(bridge)


async def fetch_public_key(settings: Optional[BridgeSettings] = None) -> str:
    return await _one_shot(settings, lambda bridge: bridge.get_public_key())


async def launch_signer(
    events: Sequence[Event], settings: Optional[BridgeSettings] = None
) -> List[Event]:
    return await _one_shot(settings, lambda bridge: bridge.sign_events(events))


async def run_cipher(
    mode: Mode,
    pubkey: str,
    text: str,
    settings: Optional[BridgeSettings] = None,
) -> str:
    if mode not in CIPHER_MODES:
        raise ValueError(f"{mode.value} is not an encryption mode")
    method = _CIPHER_METHODS[mode]
    return await _one_shot(settings, lambda bridge: getattr(bridge, method)(pubkey, text))


class BrowserSigner:
    """Signer that keeps one bridge session open across several operations."""

    def __init__(self, settings: Optional[BridgeSettings] = None) -> None:
        self.settings = settings or BridgeSettings()
        self.pubkey: Optional[str] = None
        self._bridge: Optional[NIP07Bridge] = None

    @property
    def active(self) -> bool:
        return self._bridge is not None

    async def initialize(self) -> str:
        if self._bridge is None:
            self._bridge = await NIP07Bridge.start(self.settings)
        try:
            self.pubkey = await self._bridge.get_public_key()
        except BaseException:
            await self.dispose()
            raise
        LOGGER.info("Signer ready for %s", self.pubkey)
        return self.pubkey

    async def dispose(self) -> None:
        bridge, self._bridge = self._bridge, None
        if bridge is not None:
            await bridge.close()

    async def __aenter__(self) -> "BrowserSigner":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.dispose()

    async def sign(self, events: Sequence[Event]) -> List[Event]:
        if self._bridge is None:
            # Not initialized: run a single-use session for this batch.
            return await launch_signer(events, self.settings)
        return await self._bridge.sign_events(events)

    async def encrypt(self, pubkey: str, plaintext: str, *, nip44: bool = True) -> str:
        mode = Mode.NIP44_ENCRYPT if nip44 else Mode.NIP04_ENCRYPT
        return await self._cipher(mode, pubkey, plaintext)

    async def decrypt(self, pubkey: str, ciphertext: str, *, nip44: bool = True) -> str:
        mode = Mode.NIP44_DECRYPT if nip44 else Mode.NIP04_DECRYPT
        return await self._cipher(mode, pubkey, ciphertext)

    async def _cipher(self, mode: Mode, pubkey: str, text: str) -> str:
        if self._bridge is None:
            return await run_cipher(mode, pubkey, text, self.settings)
        return await getattr(self._bridge, _CIPHER_METHODS[mode])(pubkey, text)
