"""Captures a full-page screenshot of one site after masking its dynamic elements."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from visual_regression.errors import NavigationTimeout, StabilizationTimeout
from visual_regression.models.config import BrowserConfig, SiteConfig, StabilizationConfig
from visual_regression.models.test_result import SelectorOutcome

logger = logging.getLogger(__name__)

# Keeps the element's box in the layout
_EXCLUDE_SCRIPT = """els => {
    els.forEach(el => el.style.setProperty('visibility', 'hidden', 'important'));
    return els.length;
}"""

# Removes the element from the layout
_HIDE_SCRIPT = """els => {
    els.forEach(el => el.style.setProperty('display', 'none', 'important'));
    return els.length;
}"""

_HEIGHT_SCRIPT = """() => Math.max(
    document.body ? document.body.scrollHeight : 0,
    document.documentElement ? document.documentElement.scrollHeight : 0
)"""


@dataclass
class HeightStabilization:
    stable: bool
    height: int | None = None
    readings: int = 0


@dataclass
class Snapshot:
    path: Path
    selector_outcomes: list[SelectorOutcome] = field(default_factory=list)
    stabilization: HeightStabilization | None = None

    @property
    def missing_selectors(self) -> list[str]:
        return [o.selector for o in self.selector_outcomes if not o.found]


class PageSnapshotter:
    """Drives a Playwright page through one site's capture."""

    def __init__(self, browser_config: BrowserConfig, stabilization_config: StabilizationConfig):
        self.browser_config = browser_config
        self.stabilization_config = stabilization_config

    async def capture(self, page: Page, site: SiteConfig, output_path: Path) -> Snapshot:
        await self.navigate(page, site)
        outcomes = await self.apply_selectors(page, site)
        stabilization = await self.wait_for_stable_height(page, site.url)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        await page.screenshot(
            path=str(output_path),
            full_page=True,
            animations="disabled" if self.browser_config.disable_animations else "allow",
        )
        logger.debug("Captured %s to %s", site.url, output_path)
        return Snapshot(path=output_path, selector_outcomes=outcomes, stabilization=stabilization)

    async def navigate(self, page: Page, site: SiteConfig) -> None:
        timeout = self.browser_config.navigation_timeout_ms
        logger.debug("Navigating to %s (wait_until=%s, timeout=%dms)",
                     site.url, self.browser_config.wait_until, timeout)
        try:
            await page.goto(site.url, wait_until=self.browser_config.wait_until, timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(site.url, timeout) from e

    async def apply_selectors(self, page: Page, site: SiteConfig) -> list[SelectorOutcome]:
        outcomes = []
        for selector in site.exclude_selectors:
            outcomes.append(await self._mask(page, site, selector, "exclude", _EXCLUDE_SCRIPT))
        for selector in site.hide_selectors:
            outcomes.append(await self._mask(page, site, selector, "hide", _HIDE_SCRIPT))
        return outcomes

    async def _mask(
        self, page: Page, site: SiteConfig, selector: str, action: str, script: str,
    ) -> SelectorOutcome:
        try:
            matched = await page.locator(selector).evaluate_all(script)
        except PlaywrightError as e:
            logger.warning("Selector %s failed on %s: %s", selector, site.name, e)
            return SelectorOutcome(selector=selector, action=action, error=str(e))

        matched = int(matched or 0)
        if matched == 0:
            logger.info("Selector %s not found on %s", selector, site.name)
        return SelectorOutcome(selector=selector, action=action, found=matched > 0, matched=matched)

    async def wait_for_stable_height(self, page: Page, url: str) -> HeightStabilization:
        """Poll the document height until it repeats enough times in a row.

        Best-effort: gives up after the timeout unless stabilization is strict.
        """
        cfg = self.stabilization_config
        deadline = time.monotonic() + cfg.timeout_ms / 1000
        last_height: int | None = None
        streak = 0
        readings = 0

        while True:
            try:
                height = int(await page.evaluate(_HEIGHT_SCRIPT))
            except PlaywrightError as e:
                logger.warning("Could not read page height for %s: %s", url, e)
                break
            readings += 1
            streak = streak + 1 if height == last_height else 1
            last_height = height
            if streak >= cfg.required_stable_readings:
                logger.debug("Layout of %s stable at %dpx after %d reading(s)", url, height, readings)
                return HeightStabilization(stable=True, height=height, readings=readings)
            if time.monotonic() >= deadline:
                break
            await asyncio.sleep(cfg.interval_ms / 1000)

        if cfg.strict:
            raise StabilizationTimeout(url, cfg.timeout_ms, last_height)
        logger.warning("Layout of %s did not stabilize within %dms, capturing anyway",
                       url, cfg.timeout_ms)
        return HeightStabilization(stable=False, height=last_height, readings=readings)
