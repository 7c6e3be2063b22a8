from __future__ import annotations

from pathlib import Path
import socket
import sys

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nip07_bridge.app import create_app
from nip07_bridge.config import BridgeSettings
from nip07_bridge.session import SessionState


@pytest.fixture(autouse=True)
def no_browser(monkeypatch):
    opened: list[str] = []

    def fake_open(url: str, *args, **kwargs) -> bool:
        opened.append(url)
        return True

    monkeypatch.setattr("nip07_bridge.launcher.webbrowser.open", fake_open)
    yield opened


@pytest.fixture
def fast_settings() -> BridgeSettings:
    return BridgeSettings(
        port=0,
        open_browser=False,
        browser_open_delay=0,
        shutdown_grace=0.05,
    )


@pytest.fixture
def session() -> SessionState:
    return SessionState()


@pytest.fixture
def client(session, fast_settings):
    app = create_app(session, fast_settings)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def busy_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        yield sock.getsockname()[1]
