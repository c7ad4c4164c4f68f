"""Runs the visual checks for each due site."""

from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path

from playwright.async_api import Browser, async_playwright
from playwright.async_api import Error as PlaywrightError

from visual_regression.errors import VisualRegressionError
from visual_regression.executor.baseline_store import BaselineStore
from visual_regression.executor.comparator import BaselineComparator
from visual_regression.executor.snapshotter import PageSnapshotter
from visual_regression.models.config import MonitorConfig, SiteConfig
from visual_regression.models.environment import RunEnvironment
from visual_regression.models.test_result import RunResult, TestResult
from visual_regression.scheduler.schedule import DueSet
from visual_regression.utils.browser import create_context, launch_browser

logger = logging.getLogger(__name__)

_STATUS_BY_COMPARISON = {
    "baseline_created": "baseline_created",
    "passed": "pass",
    "failed": "fail",
}


class Runner:
    """Checks due sites one at a time against a single shared browser."""

    def __init__(self, config: MonitorConfig, env: RunEnvironment, run_id: str | None = None):
        self.config = config
        self.env = env
        self.run_id = run_id or f"run_{uuid.uuid4().hex[:8]}"
        self.store = BaselineStore(Path(config.screenshots_dir), run_id=self.run_id)
        self.snapshotter = PageSnapshotter(config.browser, config.stabilization)
        self.comparator = BaselineComparator(config.comparison, self.store)
        self.retries = config.effective_retries(env)

    async def run(self, due: DueSet) -> RunResult:
        """Check every site in the due set and return the run summary.

        Sites never run concurrently: each one gets a fresh browser context on
        the shared Chromium instance, and a failure in one site is recorded as
        its result without stopping the others.
        """
        started_at = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        start_time = time.time()
        total = len(due.sites)
        logger.info("Starting run %s (%d site(s), %d retries)", self.run_id, total, self.retries)

        results: list[TestResult] = []
        if due.sites:
            async with async_playwright() as p:
                logger.debug("Launching Chromium...")
                browser = await launch_browser(p, self.config.browser)
                try:
                    for index, site in enumerate(due.sites):
                        logger.info("Checking site [%d/%d]: %s", index + 1, total, site.title)
                        result = await self._check_site(browser, site)
                        logger.info("[%s] %s (%.1fs)", result.status.upper(), site.title,
                                    result.duration_seconds)
                        results.append(result)
                finally:
                    await browser.close()

        duration = time.time() - start_time
        run_result = RunResult(
            run_id=self.run_id,
            started_at=started_at,
            completed_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            forced=due.forced,
            total=len(results),
            passed=sum(1 for r in results if r.ok),
            failed=sum(1 for r in results if not r.ok),
            baselines_created=sum(1 for r in results if r.status == "baseline_created"),
            duration_seconds=round(duration, 2),
            tests=results,
        )
        logger.info(
            "Run complete: %d passed, %d failed, %d baseline(s) created (%.1fs)",
            run_result.passed, run_result.failed, run_result.baselines_created, duration,
        )
        return run_result

    async def _check_site(self, browser: Browser, site: SiteConfig) -> TestResult:
        start = time.time()
        attempts = 0
        while True:
            attempts += 1
            result = await self._attempt(browser, site)
            if result.ok or attempts > self.retries:
                break
            logger.warning("Retrying %s (attempt %d of %d): %s",
                           site.title, attempts + 1, self.retries + 1, result.message)
        result.attempts = attempts
        result.duration_seconds = round(time.time() - start, 2)
        return result

    async def _attempt(self, browser: Browser, site: SiteConfig) -> TestResult:
        context = None
        try:
            context = await create_context(browser, self.config.browser)
            page = await context.new_page()
            snapshot = await self.snapshotter.capture(page, site, self.store.current_path(site))
            comparison = self.comparator.compare(site, snapshot.path)
        except (VisualRegressionError, PlaywrightError, OSError) as e:
            logger.error("Check failed for %s: %s", site.title, e)
            return self._result(site, ok=False, status="fail", message=str(e))
        finally:
            if context is not None:
                await context.close()

        status = _STATUS_BY_COMPARISON[comparison.status]
        return self._result(
            site,
            ok=comparison.passed,
            status=status,
            message=comparison.message,
            selector_outcomes=snapshot.selector_outcomes,
            comparison=comparison,
            screenshot_path=str(snapshot.path),
        )

    @staticmethod
    def _result(site: SiteConfig, **kwargs) -> TestResult:
        return TestResult(
            title=site.title,
            site_name=site.name,
            period=site.period,
            url=site.url,
            **kwargs,
        )
