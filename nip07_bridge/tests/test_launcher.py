from __future__ import annotations

import asyncio
import webbrowser

from nip07_bridge.launcher import BrowserLauncher

URL = "http://localhost:17007/"


def test_opens_browser_once(no_browser):
    launcher = BrowserLauncher(URL, delay=0)

    async def _main() -> list[bool]:
        return [await launcher.open(), await launcher.open()]

    assert asyncio.run(_main()) == [True, False]
    assert no_browser == [URL]
    assert launcher.opened


def test_reset_allows_reopening(no_browser):
    launcher = BrowserLauncher(URL, delay=0)

    async def _main() -> None:
        await launcher.open()
        launcher.reset()
        await launcher.open()

    asyncio.run(_main())
    assert no_browser == [URL, URL]


def test_disabled_launcher_never_opens(no_browser, caplog):
    launcher = BrowserLauncher(URL, enabled=False, delay=0)

    assert asyncio.run(launcher.open()) is False
    assert no_browser == []
    assert URL in caplog.text


def test_missing_browser_is_not_fatal(monkeypatch, caplog):
    monkeypatch.setattr("nip07_bridge.launcher.webbrowser.open", lambda url: False)
    launcher = BrowserLauncher(URL, delay=0)

    assert asyncio.run(launcher.open()) is False
    assert "navigate manually" in caplog.text


def test_browser_error_is_not_fatal(monkeypatch, caplog):
    def broken(url: str) -> bool:
        raise webbrowser.Error("could not locate runnable browser")

    monkeypatch.setattr("nip07_bridge.launcher.webbrowser.open", broken)
    launcher = BrowserLauncher(URL, delay=0)

    assert asyncio.run(launcher.open()) is False
    assert launcher.opened
