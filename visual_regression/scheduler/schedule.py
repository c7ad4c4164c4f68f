"""Due-site selection — decides which sites a scheduled invocation must check."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from visual_regression.errors import InvalidPeriodFormat

if TYPE_CHECKING:
    from visual_regression.models.config import SiteConfig

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"([0-9]+)([mhd])")
UNIT_MINUTES = {"m": 1, "h": 60, "d": 60 * 24}

# The CI timer does not fire exactly on period boundaries
DEFAULT_DUE_WINDOW_MINUTES = 15

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class DueSet:
    sites: list[SiteConfig] = field(default_factory=list)
    forced: bool = False  # period check bypassed (manual or local run)

    @property
    def has_tests(self) -> bool:
        return bool(self.sites)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self.sites]


def period_to_minutes(period: str) -> int:
    """Parse a period such as ``15m``, ``2h`` or ``3d`` into minutes."""
    match = PERIOD_PATTERN.fullmatch(period) if isinstance(period, str) else None
    if not match:
        raise InvalidPeriodFormat(period)
    value, unit = match.groups()
    minutes = int(value) * UNIT_MINUTES[unit]
    if minutes == 0:
        raise InvalidPeriodFormat(period)
    return minutes


def minutes_since_epoch(now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - _EPOCH) // timedelta(minutes=1)


def is_due(period: str, now: datetime, window: int = DEFAULT_DUE_WINDOW_MINUTES) -> bool:
    """Return True when ``now`` falls in the first ``window`` minutes of a period.

    A window at least as long as the period makes the site always due.
    """
    period_minutes = period_to_minutes(period)
    return minutes_since_epoch(now) % period_minutes < window


def select_due_sites(
    sites: Iterable[SiteConfig],
    now: datetime,
    force_all: bool = False,
    window: int = DEFAULT_DUE_WINDOW_MINUTES,
) -> DueSet:
    """Pick the sites the current invocation must check."""
    sites = list(sites)
    if force_all:
        logger.info("All %d site(s) eligible (manual/local run)", len(sites))
        return DueSet(sites=sites, forced=True)

    due = [s for s in sites if is_due(s.period, now, window)]
    if due:
        logger.info("%d site(s) due for testing: %s", len(due), ", ".join(s.name for s in due))
    else:
        logger.info("No sites due for testing in this time window")
    return DueSet(sites=due)


def write_ci_output(output_path: str | Path | None, has_tests: bool) -> None:
    """Append the ``has_tests`` flag to the CI step output file."""
    line = f"has_tests={'true' if has_tests else 'false'}\n"
    if not output_path:
        logger.debug("No CI output file configured, skipping: %s", line.strip())
        return
    with open(output_path, "a", encoding="utf-8") as f:
        f.write(line)
    logger.debug("Wrote %s to %s", line.strip(), output_path)
