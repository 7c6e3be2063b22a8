"""Flask application the browser tab polls and posts results to."""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from flask import Flask, jsonify, render_template_string, request
from pydantic import ValidationError

from .completion import ExtensionError
from .config import BridgeSettings
from .logs import log_event
from .models import (
    CIPHER_MODES,
    BridgeResponse,
    EncryptionResultSubmission,
    Mode,
    PublicKeySubmission,
    SignedEventsSubmission,
)
from .page import PAGE_TEMPLATE
from .session import Operation, SessionState

LOGGER = logging.getLogger(__name__)

COMPONENT = "Bridge Server"


def _ok():
    return jsonify(BridgeResponse(success=True).model_dump())


def _bad_request(route: str, exc: ValidationError):
    req_id = secrets.token_hex(4)
    log_event(
        LOGGER,
        COMPONENT,
        "http",
        "bad_request",
        req_id,
        level=logging.WARNING,
        route=route,
        errors=exc.error_count(),
    )
    message = f"Invalid JSON format: {exc.errors()[0]['msg']}"
    return jsonify(BridgeResponse(success=False, message=message).model_dump()), 400


def _report(
    session: SessionState,
    operation: Optional[Operation],
    route: str,
    event: str = "resolved",
    **fields: object,
) -> None:
    if operation is None:
        active = session.operation
        log_event(
            LOGGER,
            COMPONENT,
            "http",
            "ignored",
            active.request_id if active else None,
            route=route,
            active_mode=active.mode.value if active else None,
        )
        return
    level = logging.WARNING if event == "rejected" else logging.INFO
    log_event(
        LOGGER,
        COMPONENT,
        operation.mode.value,
        event,
        operation.request_id,
        level=level,
        **fields,
    )


def create_app(session: SessionState, settings: BridgeSettings | None = None) -> Flask:
    settings = settings or BridgeSettings()

    app = Flask(__name__)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    @app.get("/")
    def index():
        return render_template_string(
            PAGE_TEMPLATE,
            state_poll_ms=int(settings.state_poll_interval * 1000),
            shutdown_poll_ms=int(settings.shutdown_poll_interval * 1000),
        )

    @app.get("/api/state")
    def state():
        return jsonify(session.snapshot().model_dump(mode="json"))

    @app.get("/api/shutdown")
    def shutdown():
        return jsonify(session.shutdown_status().model_dump())

    @app.post("/public-key")
    def public_key():
        try:
            payload = PublicKeySubmission.model_validate_json(request.get_data())
        except ValidationError as exc:
            return _bad_request("/public-key", exc)
        operation = session.resolve({Mode.PUBLIC_KEY}, payload.publicKey)
        _report(session, operation, "/public-key", public_key=payload.publicKey)
        return _ok()

    @app.post("/signed-events")
    def signed_events():
        try:
            events = SignedEventsSubmission.validate_json(request.get_data())
        except ValidationError as exc:
            return _bad_request("/signed-events", exc)
        operation = session.resolve({Mode.SIGN}, events)
        _report(session, operation, "/signed-events", event_count=len(events))
        return _ok()

    @app.post("/encryption-result")
    def encryption_result():
        try:
            payload = EncryptionResultSubmission.model_validate_json(request.get_data())
        except ValidationError as exc:
            return _bad_request("/encryption-result", exc)
        if payload.error is not None:
            operation = session.reject(CIPHER_MODES, ExtensionError(payload.error))
            _report(session, operation, "/encryption-result", "rejected", error=payload.error)
        elif payload.result is not None:
            operation = session.resolve(CIPHER_MODES, payload.result)
            _report(session, operation, "/encryption-result", result_length=len(payload.result))
        return _ok()

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify(BridgeResponse(success=False, message="Not Found").model_dump()), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return (
            jsonify(BridgeResponse(success=False, message="Method Not Allowed").model_dump()),
            405,
        )

    return app
