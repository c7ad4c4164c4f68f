"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from visual_regression.models.test_result import RunResult


def generate_json_report(run_result: RunResult, output_path: Path) -> None:
    """Write the machine-readable run summary consumed by the notifier."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    report = run_result.model_dump()
    report["failures"] = [
        {"title": t.title, "url": t.url, "message": t.message}
        for t in run_result.tests if not t.ok
    ]

    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
