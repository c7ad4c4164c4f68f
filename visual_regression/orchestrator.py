"""Pipeline orchestrator — coordinates schedule, check, and notify stages."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from visual_regression.executor.runner import Runner
from visual_regression.models.config import MonitorConfig
from visual_regression.models.environment import RunEnvironment
from visual_regression.models.notification import DeliveryReport, NotifyMode
from visual_regression.models.test_result import RunResult
from visual_regression.reporter.json_report import generate_json_report
from visual_regression.reporter.notifier import notify
from visual_regression.reporter.result_summary import load_asset_map, load_result_summary
from visual_regression.scheduler.schedule import DueSet, select_due_sites, write_ci_output

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs the monitor's stages against one loaded config and environment."""

    def __init__(self, config: MonitorConfig, env: RunEnvironment):
        self.config = config
        self.env = env

    def select_due(
        self,
        now: datetime | None = None,
        force_all: bool = False,
        only: Iterable[str] = (),
    ) -> DueSet:
        """Pick due sites; manual/local runs and ``force_all`` check everything."""
        now = now or datetime.now(timezone.utc)
        due = select_due_sites(
            self.config.sites,
            now,
            force_all=force_all or self.env.is_manual,
            window=self.config.due_window_minutes,
        )
        only = set(only)
        if only:
            unknown = only - {s.name for s in self.config.sites}
            for name in sorted(unknown):
                logger.warning("Site %s is not in the config", name)
            due = DueSet(sites=[s for s in due.sites if s.name in only], forced=due.forced)
        return due

    def check_schedule(self, now: datetime | None = None) -> DueSet:
        """Decide whether this invocation has work and publish ``has_tests``."""
        due = self.select_due(now)
        write_ci_output(self.env.output_path, due.has_tests)
        return due

    def run_checks(
        self,
        now: datetime | None = None,
        force_all: bool = False,
        only: Iterable[str] = (),
    ) -> RunResult:
        """Capture and compare every due site, then write the results summary."""
        return asyncio.run(self._run_checks(now, force_all, only))

    async def _run_checks(
        self, now: datetime | None, force_all: bool, only: Iterable[str],
    ) -> RunResult:
        start = time.time()
        logger.info("=== Starting visual regression run ===")
        due = self.select_due(now, force_all=force_all, only=only)
        runner = Runner(self.config, self.env)
        run_result = await runner.run(due)

        results_path = Path(self.config.results_path)
        generate_json_report(run_result, results_path)
        logger.info("Results written to %s", results_path)
        logger.info("=== Run complete in %.1fs ===", time.time() - start)
        return run_result

    def notify(
        self,
        mode: NotifyMode | str,
        results_path: str | Path | None = None,
        asset_map_path: str | Path | None = None,
    ) -> DeliveryReport:
        """Post the results summary to the webhook configured for ``mode``."""
        return asyncio.run(self._notify(NotifyMode(mode), results_path, asset_map_path))

    async def _notify(
        self,
        mode: NotifyMode,
        results_path: str | Path | None,
        asset_map_path: str | Path | None,
    ) -> DeliveryReport:
        webhook_url = self.env.webhook_for_mode(mode.value)
        entries = None
        if webhook_url:
            entries = load_result_summary(results_path or self.config.results_path)
        asset_map = load_asset_map(asset_map_path or self.config.asset_map_path)
        return await notify(
            entries,
            self.config.sites,
            asset_map,
            mode,
            webhook_url,
            report_url=self.env.report_url,
        )
