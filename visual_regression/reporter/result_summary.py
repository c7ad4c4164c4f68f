"""Loads result summaries and the uploaded-asset map for the notifier."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from visual_regression.models.test_result import ResultEntry, RunResult

logger = logging.getLogger(__name__)


def parse_result_summary(data: dict[str, Any]) -> list[ResultEntry]:
    """Accept either a run summary or a Playwright JSON reporter document."""
    if "suites" in data:
        entries: list[ResultEntry] = []
        for suite in data.get("suites") or []:
            entries.extend(_walk_suite(suite))
        return entries

    run_result = RunResult.model_validate(data)
    return [ResultEntry(title=t.title, ok=t.ok, message=t.message) for t in run_result.tests]


def _walk_suite(suite: dict[str, Any]) -> list[ResultEntry]:
    entries = [
        ResultEntry(title=spec.get("title", ""), ok=bool(spec.get("ok")))
        for spec in suite.get("specs") or []
    ]
    for child in suite.get("suites") or []:
        entries.extend(_walk_suite(child))
    return entries


def load_result_summary(path: str | Path) -> list[ResultEntry] | None:
    """Load result entries from disk; None when no usable results were written."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        entries = parse_result_summary(data)
    except (json.JSONDecodeError, ValidationError, ValueError) as e:
        logger.error("Results file %s is not a readable summary: %s", path, e)
        return None
    logger.debug("Loaded %d result(s) from %s", len(entries), path)
    return entries


def load_asset_map(path: str | Path) -> dict[str, str]:
    """Load the uploaded-asset map; an absent file means no images."""
    path = Path(path)
    if not path.exists():
        logger.debug("No asset map at %s", path)
        return {}
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        logger.warning("Asset map %s is not a JSON object, ignoring", path)
        return {}
    return {str(k): str(v) for k, v in data.items() if v}
