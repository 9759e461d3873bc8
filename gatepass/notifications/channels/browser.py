"""WhatsApp Web automation channel.

One persistent, logged-in browser page is the whole resource behind this
channel.  Logging in needs somebody to scan the WhatsApp QR code, so the
login runs in the background after ``start()`` and the channel reports
itself not ready until the chat list shows up.  If that does not happen
within the login timeout the channel stays not ready and the dispatcher
falls through to the next channel.

Sends hold ``_lock`` for their whole duration: the page cannot drive two
conversations at once.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from urllib.parse import quote

from playwright.async_api import BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from gatepass.errors import AutomationTimeoutError, NotReadyError

from .base import BaseChannel, DeliveryResult

logger = logging.getLogger(__name__)

WHATSAPP_WEB_URL = "https://web.whatsapp.com"
CHAT_LIST_SELECTOR = '[data-testid="chat-list"]'
COMPOSE_BOX_SELECTOR = '[data-testid="conversation-compose-box-input"]'
ATTACH_BUTTON_SELECTOR = '[data-testid="compose-btn-attach"]'
FILE_INPUT_SELECTOR = 'input[type="file"]'
MEDIA_SEND_SELECTOR = '[data-testid="send"]'
CHAT_TIMEOUT_MS = 10_000


class WhatsAppWebChannel(BaseChannel):
    """Sends through a logged-in WhatsApp Web session driven by Playwright."""

    name = "whatsapp_web"
    supports_media = True

    def __init__(
        self,
        *,
        enabled: bool,
        user_data_dir: str = ".whatsapp-session",
        headless: bool = True,
        login_timeout: float = 120.0,
    ) -> None:
        self._enabled = enabled
        self._user_data_dir = user_data_dir
        self._headless = headless
        self._login_timeout = login_timeout
        self._lock = asyncio.Lock()
        self._page: Page | None = None
        self._context: BrowserContext | None = None
        self._playwright: Playwright | None = None
        self._login_task: asyncio.Task[None] | None = None
        self._ready = False
        self._failure: Exception | None = None

    def is_configured(self) -> bool:
        return self._enabled

    @property
    def ready(self) -> bool:
        return self._ready

    async def start(self) -> None:
        if not self._enabled or self._login_task is not None:
            return
        self._login_task = asyncio.create_task(self._login(), name="whatsapp-web-login")

    async def wait_ready(self) -> bool:
        if self._login_task is not None:
            await asyncio.shield(self._login_task)
        return self._ready

    async def _open_page(self) -> Page:
        self._playwright = await async_playwright().start()
        self._context = await self._playwright.chromium.launch_persistent_context(
            self._user_data_dir,
            headless=self._headless,
            args=["--no-sandbox", "--disable-dev-shm-usage"],
        )
        return self._context.pages[0] if self._context.pages else await self._context.new_page()

    async def _login(self) -> None:
        try:
            page = await self._open_page()
            await page.goto(WHATSAPP_WEB_URL)
            logger.info("WhatsApp Web loaded; waiting up to %.0fs for QR login", self._login_timeout)
            await page.wait_for_selector(CHAT_LIST_SELECTOR, timeout=self._login_timeout * 1000)
        except PlaywrightTimeoutError:
            self._failure = AutomationTimeoutError(
                f"WhatsApp Web login not completed within {self._login_timeout:.0f}s"
            )
            logger.error("%s", self._failure)
            return
        except Exception as exc:
            self._failure = exc
            logger.exception("WhatsApp Web session could not be opened")
            return

        self._page = page
        self._ready = True
        logger.info("WhatsApp Web session ready")

    async def send(self, recipient: str, message: str, media: str | None = None) -> DeliveryResult:
        async with self._lock:
            if not self._ready or self._page is None:
                detail = f": {self._failure}" if self._failure else ""
                raise NotReadyError(f"WhatsApp Web session is not ready{detail}")

            page = self._page
            try:
                await page.goto(f"{WHATSAPP_WEB_URL}/send?phone={recipient}&text={quote(message, safe='')}")
                await page.wait_for_selector(COMPOSE_BOX_SELECTOR, timeout=CHAT_TIMEOUT_MS)
                if media and Path(media).is_file():
                    await page.click(ATTACH_BUTTON_SELECTOR)
                    await page.set_input_files(FILE_INPUT_SELECTOR, media)
                    await page.wait_for_selector(MEDIA_SEND_SELECTOR, timeout=CHAT_TIMEOUT_MS)
                    await page.click(MEDIA_SEND_SELECTOR)
                else:
                    await page.press(COMPOSE_BOX_SELECTOR, "Enter")
            except PlaywrightTimeoutError as exc:
                raise AutomationTimeoutError(f"WhatsApp Web chat did not open: {exc}") from exc

        logger.info("Message sent through WhatsApp Web")
        return DeliveryResult(channel=self.name, success=True)

    async def stop(self) -> None:
        if self._login_task is not None and not self._login_task.done():
            self._login_task.cancel()
            try:
                await self._login_task
            except asyncio.CancelledError:
                pass
        self._login_task = None
        self._ready = False
        self._page = None
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
