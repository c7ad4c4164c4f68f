"""Configuration models for the visual regression monitor."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from visual_regression.errors import ConfigError
from visual_regression.models.environment import RunEnvironment
from visual_regression.scheduler.schedule import period_to_minutes

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "urls.yml"


class _CamelModel(BaseModel):
    """YAML documents use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ViewportConfig(_CamelModel):
    width: int = 1920
    height: int = 1080


class SiteConfig(_CamelModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    url: str
    period: str
    exclude_selectors: list[str] = Field(default_factory=list)  # visibility: hidden
    hide_selectors: list[str] = Field(default_factory=list)  # display: none

    @field_validator("period")
    @classmethod
    def validate_period(cls, v: str) -> str:
        period_to_minutes(v)
        return v

    @property
    def title(self) -> str:
        return f"{self.name} ({self.period})"


class ComparisonConfig(_CamelModel):
    threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    max_diff_pixels: int = Field(default=100, ge=0)
    max_diff_pixel_ratio: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    update_baseline_on_pass: bool = False


class BrowserConfig(_CamelModel):
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    navigation_timeout_ms: int = Field(default=30000, gt=0)
    wait_until: str = "networkidle"
    headless: bool = True
    user_agent: Optional[str] = None
    disable_animations: bool = True

    @field_validator("wait_until")
    @classmethod
    def validate_wait_until(cls, v: str) -> str:
        allowed = ("load", "domcontentloaded", "networkidle", "commit")
        if v not in allowed:
            raise ValueError(f"waitUntil must be one of {', '.join(allowed)}")
        return v


class StabilizationConfig(_CamelModel):
    interval_ms: int = Field(default=500, gt=0)
    timeout_ms: int = Field(default=10000, ge=0)
    required_stable_readings: int = Field(default=3, ge=1)
    strict: bool = False


class MonitorConfig(_CamelModel):
    sites: list[SiteConfig] = Field(default_factory=list)

    comparison: ComparisonConfig = Field(default_factory=ComparisonConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    stabilization: StabilizationConfig = Field(default_factory=StabilizationConfig)

    # Filesystem layout
    screenshots_dir: str = "screenshots"
    results_path: str = "test-results/results.json"
    asset_map_path: str = "r2-paths.json"

    # None: 2 retries under CI, none locally
    retries: Optional[int] = Field(default=None, ge=0)
    due_window_minutes: int = Field(default=15, ge=0)

    @model_validator(mode="before")
    @classmethod
    def migrate_grouped_shape(cls, data: Any) -> Any:
        if isinstance(data, dict) and "period" in data:
            return migrate_grouped_config(data)
        return data

    @field_validator("sites")
    @classmethod
    def validate_unique_names(cls, v: list[SiteConfig]) -> list[SiteConfig]:
        seen: set[str] = set()
        for site in v:
            if site.name in seen:
                raise ValueError(f"Duplicate site name: {site.name}")
            seen.add(site.name)
        return v

    def get_site(self, name: str) -> SiteConfig | None:
        for site in self.sites:
            if site.name == name:
                return site
        return None

    def effective_retries(self, env: RunEnvironment) -> int:
        if self.retries is not None:
            return self.retries
        return 2 if env.ci else 0

    @classmethod
    def from_yaml(cls, text: str, source: str = "<string>") -> "MonitorConfig":
        """Parse a YAML document into a config."""
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {source}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config in {source} must be a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config in {source}: {e}") from e

    @classmethod
    def load(cls, path: str | Path) -> "MonitorConfig":
        """Load config from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            return cls.from_yaml(f.read(), source=str(path))

    def save(self, path: str | Path) -> None:
        """Save config to a YAML file in the canonical flat shape."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                self.model_dump(by_alias=True, exclude_none=True),
                f,
                sort_keys=False,
            )


def migrate_grouped_config(data: dict[str, Any]) -> dict[str, Any]:
    """Convert ``period: {<period>: [sites]}`` into the flat ``sites:`` list.

    Each grouped entry inherits its group's period. Sites already present in a
    flat ``sites`` list are kept ahead of the migrated ones.
    """
    grouped = data.get("period") or {}
    if not isinstance(grouped, dict):
        raise ConfigError("'period' must map period strings to site lists")

    migrated = {k: v for k, v in data.items() if k != "period"}
    sites = list(migrated.get("sites") or [])
    for period, entries in grouped.items():
        for entry in entries or []:
            if not isinstance(entry, dict):
                raise ConfigError(f"Site entry under period {period!r} must be a mapping")
            sites.append({**entry, "period": str(period)})
    migrated["sites"] = sites
    logger.debug("Migrated %d grouped site(s) to flat config shape", len(sites))
    return migrated


def load_config(env: RunEnvironment, path: str | Path = DEFAULT_CONFIG_PATH) -> MonitorConfig:
    """Load the config from the inline environment override, else from disk."""
    if env.urls_config:
        logger.debug("Loading site config from URLS_CONFIG environment variable")
        return MonitorConfig.from_yaml(env.urls_config, source="URLS_CONFIG")
    logger.debug("Loading site config from %s", path)
    return MonitorConfig.load(path)
