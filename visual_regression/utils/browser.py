"""Browser launch and context helpers."""

from __future__ import annotations

from playwright.async_api import Browser, BrowserContext, Playwright

from visual_regression.models.config import BrowserConfig

# Reduce rendering noise between runs
_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--font-render-hinting=none",
    "--hide-scrollbars",
]


async def launch_browser(playwright: Playwright, config: BrowserConfig) -> Browser:
    """Launch the shared Chromium instance."""
    return await playwright.chromium.launch(headless=config.headless, args=_LAUNCH_ARGS)


async def create_context(browser: Browser, config: BrowserConfig) -> BrowserContext:
    """Create an isolated context for one site check."""
    context_kwargs: dict = {
        "viewport": {"width": config.viewport.width, "height": config.viewport.height},
        "locale": "en-US",
        "timezone_id": "UTC",
        "device_scale_factor": 1,
    }
    if config.user_agent:
        context_kwargs["user_agent"] = config.user_agent
    if config.disable_animations:
        context_kwargs["reduced_motion"] = "reduce"
    return await browser.new_context(**context_kwargs)
