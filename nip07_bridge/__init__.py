"""Local HTTP bridge to a NIP-07 browser extension for command-line signing."""

from .bridge import BridgeStartupError, NIP07Bridge
from .completion import (
    BridgeError,
    Completion,
    CompletionError,
    ExtensionError,
    OperationSupersededError,
    SessionClosedError,
)
from .config import BridgeSettings
from .models import Mode
from .session import SessionState
from .signer import BrowserSigner, fetch_public_key, launch_signer, run_cipher

__all__ = [
    "NIP07Bridge",
    "BridgeSettings",
    "BrowserSigner",
    "SessionState",
    "Completion",
    "Mode",
    "BridgeError",
    "BridgeStartupError",
    "CompletionError",
    "ExtensionError",
    "OperationSupersededError",
    "SessionClosedError",
    "fetch_public_key",
    "launch_signer",
    "run_cipher",
]
