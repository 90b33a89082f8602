import contextlib
import logging
from typing import Any

from playwright.async_api import Browser, Playwright, async_playwright

logger = logging.getLogger("llamacode.browser")

MAX_PAGE_TEXT_LENGTH = 20_000
MAX_LINKS = 50


class BrowserSession:
    """Lazily started headless Chromium shared by all browse_url calls."""

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout_ms = int(timeout * 1000)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def _ensure_browser(self) -> Browser:
        if self._browser is not None and self._browser.is_connected():
            return self._browser
        await self.close()
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=True)
        return self._browser

    async def close(self) -> None:
        if self._browser is not None:
            with contextlib.suppress(Exception):
                await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            with contextlib.suppress(Exception):
                await self._playwright.stop()
            self._playwright = None

    async def browse(self, url: str, selector: str = "body", include_links: bool = False) -> dict[str, Any]:
        """Load ``url`` and return the title plus the visible text of ``selector``."""
        if not isinstance(url, str) or not url.strip():
            return {"success": False, "error": "'url' must be a non-empty string."}
        if not url.startswith(("http://", "https://")):
            url = "https://" + url

        try:
            browser = await self._ensure_browser()
            page = await browser.new_page()
            try:
                await page.goto(url, timeout=self.timeout_ms, wait_until="domcontentloaded")
                title = await page.title()
                text = await page.inner_text(selector or "body", timeout=self.timeout_ms)
                links: list[str] = []
                if include_links:
                    links = await page.eval_on_selector_all(
                        "a[href]", "els => els.map(e => e.href)"
                    )
            finally:
                await page.close()
        except Exception as e:
            logger.error(f"Browser error for {url}: {e}")
            return {"success": False, "error": f"Failed to load {url}: {e}"}

        if len(text) > MAX_PAGE_TEXT_LENGTH:
            text = text[:MAX_PAGE_TEXT_LENGTH] + "\n... [TRUNCATED]"
        parts = [f"Title: {title}", f"URL: {url}", "", text.strip()]
        if links:
            parts.append("\nLinks:")
            parts.extend(f"- {link}" for link in links[:MAX_LINKS])
        return {"success": True, "output": "\n".join(parts)}
