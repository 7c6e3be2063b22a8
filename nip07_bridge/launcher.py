"""Best-effort opening of the default browser on the session URL."""

from __future__ import annotations

import asyncio
import logging
import secrets
import webbrowser

from .logs import log_event

LOGGER = logging.getLogger(__name__)


class BrowserLauncher:
    """Opens the session URL at most once until :meth:`reset` is called."""

    def __init__(self, url: str, *, enabled: bool = True, delay: float = 0.5) -> None:
        self.url = url
        self.enabled = enabled
        self.delay = delay
        self._opened = False

    @property
    def opened(self) -> bool:
        return self._opened

    async def open(self) -> bool:
        if self._opened:
            return False
        # Mark first so a concurrent caller does not open a second tab.
        self._opened = True
        req_id = secrets.token_hex(4)
        if not self.enabled:
            log_event(LOGGER, "Bridge", "browser", "manual", req_id, level=logging.WARNING, url=self.url)
            return False
        log_event(LOGGER, "Bridge", "browser", "open", req_id, url=self.url)
        loop = asyncio.get_running_loop()
        try:
            launched = await loop.run_in_executor(None, webbrowser.open, self.url)
        except (webbrowser.Error, OSError) as exc:
            LOGGER.debug("webbrowser.open raised: %s", exc)
            launched = False
        if not launched:
            log_event(
                LOGGER,
                "Bridge",
                "browser",
                "open.failed",
                req_id,
                level=logging.WARNING,
                url=self.url,
            )
        await asyncio.sleep(self.delay)
        return launched

    def reset(self) -> None:
        self._opened = False
