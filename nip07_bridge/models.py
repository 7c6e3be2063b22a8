"""Pydantic models shared across bridge modules."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Type

from pydantic import BaseModel, Field, TypeAdapter

Event = Dict[str, Any]


class Mode(str, Enum):
    IDLE = "idle"
    PUBLIC_KEY = "publicKey"
    SIGN = "sign"
    NIP04_DECRYPT = "nip04Decrypt"
    NIP04_ENCRYPT = "nip04Encrypt"
    NIP44_DECRYPT = "nip44Decrypt"
    NIP44_ENCRYPT = "nip44Encrypt"


ENCRYPT_MODES: FrozenSet[Mode] = frozenset({Mode.NIP04_ENCRYPT, Mode.NIP44_ENCRYPT})
DECRYPT_MODES: FrozenSet[Mode] = frozenset({Mode.NIP04_DECRYPT, Mode.NIP44_DECRYPT})
CIPHER_MODES: FrozenSet[Mode] = ENCRYPT_MODES | DECRYPT_MODES


# Operation payloads ----------------------------------------------------
class OperationPayload(BaseModel):
    """Data the page needs to carry out the active operation."""

    def to_wire(self) -> Any:
        return self.model_dump()


class PublicKeyRequest(OperationPayload):
    pass


class SignRequest(OperationPayload):
    events: List[Event]

    def to_wire(self) -> Any:
        return self.events


class EncryptRequest(OperationPayload):
    pubkey: str = Field(min_length=1)
    plaintext: str


class DecryptRequest(OperationPayload):
    pubkey: str = Field(min_length=1)
    ciphertext: str


PAYLOAD_TYPES: Dict[Mode, Type[OperationPayload]] = {
    Mode.PUBLIC_KEY: PublicKeyRequest,
    Mode.SIGN: SignRequest,
    Mode.NIP04_ENCRYPT: EncryptRequest,
    Mode.NIP44_ENCRYPT: EncryptRequest,
    Mode.NIP04_DECRYPT: DecryptRequest,
    Mode.NIP44_DECRYPT: DecryptRequest,
}


# Browser submissions ---------------------------------------------------
class PublicKeySubmission(BaseModel):
    publicKey: str


class EncryptionResultSubmission(BaseModel):
    result: Optional[str] = None
    error: Optional[str] = None


SignedEventsSubmission = TypeAdapter(List[Event])


# Responses -------------------------------------------------------------
class StateResponse(BaseModel):
    mode: Mode = Mode.IDLE
    data: Any = None
    # Distinguishes back-to-back operations with identical mode and data.
    id: Optional[str] = None


class ShutdownResponse(BaseModel):
    shouldClose: bool = False


class BridgeResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
