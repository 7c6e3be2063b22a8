"""Stage/event log formatting shared by the bridge and its HTTP app."""

from __future__ import annotations

import json
import logging
from typing import Dict, Optional

STAGE_LABELS = {
    "session": "Session",
    "browser": "Browser",
    "publicKey": "Public Key",
    "sign": "Sign",
    "nip04Encrypt": "NIP-04 Encrypt",
    "nip04Decrypt": "NIP-04 Decrypt",
    "nip44Encrypt": "NIP-44 Encrypt",
    "nip44Decrypt": "NIP-44 Decrypt",
    "http": "HTTP",
}

EVENT_LABELS = {
    ("session", "start"): "Listener bound",
    ("session", "close.start"): "Shutdown requested",
    ("session", "close.aborted"): "Pending operation aborted",
    ("session", "close.success"): "Listener closed",
    ("browser", "open"): "Opening browser",
    ("browser", "open.failed"): "Could not open browser, navigate manually",
    ("browser", "manual"): "Browser launch disabled, open the URL manually",
    ("http", "bad_request"): "Rejected malformed submission",
    ("http", "ignored"): "Submission ignored, no matching operation",
}

OPERATION_EVENT_LABELS = {
    "start": "Waiting for browser",
    "resolved": "Result received",
    "rejected": "Extension reported an error",
    "superseded": "Superseded by a newer operation",
}


FIELD_LIMIT = 64


def log_event(
    logger: logging.Logger,
    component: str,
    stage: str,
    event: str,
    req: Optional[str],
    level: int = logging.INFO,
    **fields: object,
) -> None:
    """Log ``[Component: Stage]: Event`` followed by the fields as sorted JSON.

    ``None`` fields are dropped, long strings keep only their head and tail.
    ``req`` may be ``None`` when the line belongs to no operation.
    """
    if not logger.isEnabledFor(level):
        return
    payload: Dict[str, object] = {} if req is None else {"request_id": req}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, str) and len(value) > FIELD_LIMIT:
            half = FIELD_LIMIT // 2
            value = f"{value[:half]}…{value[-half:]}"
        payload[key] = value
    stage_label = STAGE_LABELS.get(stage, stage.title())
    event_label = EVENT_LABELS.get((stage, event)) or OPERATION_EVENT_LABELS.get(event, event)
    body = json.dumps(payload, indent=2, sort_keys=True)
    logger.log(level, f"[{component}: {stage_label}]: {event_label}\n{body}")
