"""Pytest configuration and shared fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image
from playwright.async_api import Browser, BrowserContext, Page

from visual_regression.models.config import (
    ComparisonConfig,
    MonitorConfig,
    SiteConfig,
    StabilizationConfig,
)
from visual_regression.models.environment import RunEnvironment
from visual_regression.models.test_result import ResultEntry, RunResult, TestResult


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def site_config() -> SiteConfig:
    """Create a test site configuration."""
    return SiteConfig(
        name="Home",
        url="https://example.com",
        period="1h",
        exclude_selectors=[".clock", "#ad-banner"],
        hide_selectors=[".cookie-notice"],
    )


@pytest.fixture
def sites(site_config: SiteConfig) -> list[SiteConfig]:
    """A small config: two hourly sites and one half-hourly site."""
    return [
        site_config,
        SiteConfig(name="Docs", url="https://example.com/docs", period="1h"),
        SiteConfig(name="Blog", url="https://example.com/blog", period="30m"),
    ]


@pytest.fixture
def monitor_config(sites: list[SiteConfig], tmp_path: Path) -> MonitorConfig:
    """Create a monitor config writing everything under tmp_path."""
    return MonitorConfig(
        sites=sites,
        comparison=ComparisonConfig(threshold=0.2, max_diff_pixels=100),
        stabilization=StabilizationConfig(interval_ms=1, timeout_ms=50),
        screenshots_dir=str(tmp_path / "screenshots"),
        results_path=str(tmp_path / "test-results" / "results.json"),
        asset_map_path=str(tmp_path / "r2-paths.json"),
        retries=0,
    )


@pytest.fixture
def local_env() -> RunEnvironment:
    """Environment of a developer machine: no CI, no webhooks."""
    return RunEnvironment()


@pytest.fixture
def scheduled_env(tmp_path: Path) -> RunEnvironment:
    """Environment of a scheduled CI run."""
    return RunEnvironment(
        event_name="schedule",
        ci=True,
        repository="acme/site-monitor",
        run_id="12345",
        output_path=str(tmp_path / "github_output"),
        webhook_url="https://hooks.example.com/failure",
        webhook_url_always="https://hooks.example.com/always",
    )


# ============================================================================
# Result Fixtures
# ============================================================================


@pytest.fixture
def result_entries() -> list[ResultEntry]:
    return [
        ResultEntry(title="Home (1h)", ok=True),
        ResultEntry(title="Docs (1h)", ok=False, message="512 pixel(s) differ"),
    ]


@pytest.fixture
def run_result() -> RunResult:
    return RunResult(
        run_id="run_abc12345",
        started_at="2025-01-01T00:00:00Z",
        completed_at="2025-01-01T00:01:00Z",
        total=2,
        passed=1,
        failed=1,
        duration_seconds=60.0,
        tests=[
            TestResult(
                title="Home (1h)", site_name="Home", period="1h",
                url="https://example.com", ok=True, status="pass",
            ),
            TestResult(
                title="Docs (1h)", site_name="Docs", period="1h",
                url="https://example.com/docs", ok=False, status="fail",
                message="512 pixel(s) differ",
            ),
        ],
    )


# ============================================================================
# Playwright Mock Fixtures
# ============================================================================


def write_png(path: Path, size: tuple[int, int] = (40, 30), color=(255, 255, 255)) -> Path:
    """Write a solid-colour PNG."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path)
    return path


@pytest.fixture
def png_writer():
    """Fixture that provides the write_png function."""
    return write_png


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page whose screenshots land on disk."""
    page = AsyncMock(spec=Page)
    page.url = "https://example.com"
    page.goto = AsyncMock()
    page.evaluate = AsyncMock(return_value=1200)

    locator = AsyncMock()
    locator.evaluate_all = AsyncMock(return_value=1)
    page.locator = Mock(return_value=locator)

    async def _screenshot(path=None, **kwargs):
        if path:
            write_png(Path(path))
        return b""

    page.screenshot = AsyncMock(side_effect=_screenshot)
    return page


@pytest.fixture
def mock_context(mock_page: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser context."""
    context = AsyncMock(spec=BrowserContext)
    context.new_page = AsyncMock(return_value=mock_page)
    return context


@pytest.fixture
def mock_browser(mock_context: AsyncMock) -> AsyncMock:
    """Create a mock Playwright browser."""
    browser = AsyncMock(spec=Browser)
    browser.new_context = AsyncMock(return_value=mock_context)
    return browser
