"""Tests for configuration models and config loading."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from visual_regression.errors import ConfigError, InvalidPeriodFormat
from visual_regression.models.config import (
    BrowserConfig,
    ComparisonConfig,
    MonitorConfig,
    SiteConfig,
    StabilizationConfig,
    load_config,
    migrate_grouped_config,
)
from visual_regression.models.environment import RunEnvironment

FLAT_YAML = """
sites:
  - name: Home
    url: https://example.com
    period: 1h
    excludeSelectors:
      - .clock
    hideSelectors:
      - .cookie-notice
  - name: Docs
    url: https://example.com/docs
    period: 30m
"""

GROUPED_YAML = """
period:
  30m:
    - name: Status
      url: https://status.example.com
      excludeSelectors: [".uptime"]
  1h:
    - name: Home
      url: https://example.com
"""


class TestSiteConfig:
    """Tests for SiteConfig model."""

    def test_camel_case_aliases(self):
        site = SiteConfig.model_validate({
            "name": "Home",
            "url": "https://example.com",
            "period": "1h",
            "excludeSelectors": [".clock"],
            "hideSelectors": [".banner"],
        })
        assert site.exclude_selectors == [".clock"]
        assert site.hide_selectors == [".banner"]

    def test_selectors_default_empty(self):
        site = SiteConfig(name="Home", url="https://example.com", period="15m")
        assert site.exclude_selectors == []
        assert site.hide_selectors == []

    def test_title_includes_period(self, site_config):
        assert site_config.title == "Home (1h)"

    def test_invalid_period_rejected(self):
        with pytest.raises(ValidationError, match="Invalid period format"):
            SiteConfig(name="Home", url="https://example.com", period="2x")

    def test_trailing_newline_period_rejected(self):
        with pytest.raises(ValidationError, match="Invalid period format"):
            SiteConfig(name="Home", url="https://example.com", period="1h\n")

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            SiteConfig(name="", url="https://example.com", period="1h")

    def test_immutable(self, site_config):
        with pytest.raises(ValidationError):
            site_config.name = "Other"


class TestSettingsDefaults:
    """Tests for the optional settings blocks."""

    def test_comparison_defaults(self):
        config = ComparisonConfig()
        assert config.threshold == 0.2
        assert config.max_diff_pixels == 100
        assert config.max_diff_pixel_ratio is None
        assert config.update_baseline_on_pass is False

    def test_browser_defaults(self):
        config = BrowserConfig()
        assert config.viewport.width == 1920
        assert config.viewport.height == 1080
        assert config.navigation_timeout_ms == 30000
        assert config.wait_until == "networkidle"

    def test_browser_rejects_unknown_wait_until(self):
        with pytest.raises(ValidationError):
            BrowserConfig(wait_until="forever")

    def test_stabilization_defaults(self):
        config = StabilizationConfig()
        assert config.required_stable_readings == 3
        assert config.strict is False

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            ComparisonConfig(threshold=1.5)

    def test_update_baseline_flag_from_yaml(self):
        config = MonitorConfig.from_yaml(
            "sites: []\ncomparison:\n  updateBaselineOnPass: true\n  maxDiffPixels: 5\n"
        )
        assert config.comparison.update_baseline_on_pass is True
        assert config.comparison.max_diff_pixels == 5


class TestMonitorConfig:
    """Tests for MonitorConfig parsing and validation."""

    def test_flat_shape(self):
        config = MonitorConfig.from_yaml(FLAT_YAML)
        assert [s.name for s in config.sites] == ["Home", "Docs"]
        assert config.sites[0].exclude_selectors == [".clock"]
        assert config.sites[0].hide_selectors == [".cookie-notice"]
        assert config.sites[1].period == "30m"

    def test_grouped_shape_is_migrated(self):
        config = MonitorConfig.from_yaml(GROUPED_YAML)
        by_name = {s.name: s for s in config.sites}
        assert by_name["Status"].period == "30m"
        assert by_name["Status"].exclude_selectors == [".uptime"]
        assert by_name["Home"].period == "1h"

    def test_duplicate_names_rejected(self):
        text = """
sites:
  - {name: Home, url: https://a.example.com, period: 1h}
  - {name: Home, url: https://b.example.com, period: 2h}
"""
        with pytest.raises(ConfigError, match="Duplicate site name"):
            MonitorConfig.from_yaml(text)

    def test_invalid_period_is_config_error(self):
        with pytest.raises(ConfigError, match="Invalid period format"):
            MonitorConfig.from_yaml("sites:\n  - {name: A, url: https://a.example.com, period: h5}\n")

    def test_malformed_yaml(self):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            MonitorConfig.from_yaml("sites: [unclosed")

    def test_non_mapping_document(self):
        with pytest.raises(ConfigError, match="must be a mapping"):
            MonitorConfig.from_yaml("- just\n- a list\n")

    def test_empty_document(self):
        config = MonitorConfig.from_yaml("")
        assert config.sites == []

    def test_get_site(self, monitor_config):
        assert monitor_config.get_site("Docs").url == "https://example.com/docs"
        assert monitor_config.get_site("Missing") is None

    def test_effective_retries(self):
        config = MonitorConfig()
        assert config.effective_retries(RunEnvironment(ci=True)) == 2
        assert config.effective_retries(RunEnvironment(ci=False)) == 0
        assert MonitorConfig(retries=1).effective_retries(RunEnvironment(ci=True)) == 1


class TestMigrateGroupedConfig:
    """Tests for the grouped-to-flat adapter."""

    def test_entries_inherit_group_period(self):
        data = {"period": {"15m": [{"name": "A", "url": "https://a.example.com"}]}}
        migrated = migrate_grouped_config(data)
        assert "period" not in migrated
        assert migrated["sites"] == [{"name": "A", "url": "https://a.example.com", "period": "15m"}]

    def test_existing_flat_sites_kept_first(self):
        data = {
            "sites": [{"name": "A", "url": "https://a.example.com", "period": "1h"}],
            "period": {"2h": [{"name": "B", "url": "https://b.example.com"}]},
        }
        migrated = migrate_grouped_config(data)
        assert [s["name"] for s in migrated["sites"]] == ["A", "B"]

    def test_empty_group(self):
        migrated = migrate_grouped_config({"period": {"1h": None}})
        assert migrated["sites"] == []

    def test_non_mapping_entry(self):
        with pytest.raises(ConfigError):
            migrate_grouped_config({"period": {"1h": ["https://a.example.com"]}})


class TestConfigFileOperations:
    """Tests for loading and saving config files."""

    def test_load_from_file(self, tmp_path: Path):
        config_file = tmp_path / "urls.yml"
        config_file.write_text(FLAT_YAML)
        config = MonitorConfig.load(config_file)
        assert len(config.sites) == 2

    def test_load_nonexistent_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            MonitorConfig.load(tmp_path / "missing.yml")

    def test_env_override_wins(self, tmp_path: Path):
        config_file = tmp_path / "urls.yml"
        config_file.write_text(FLAT_YAML)
        env = RunEnvironment(urls_config=GROUPED_YAML)
        config = load_config(env, config_file)
        assert {s.name for s in config.sites} == {"Status", "Home"}

    def test_file_used_without_override(self, tmp_path: Path):
        config_file = tmp_path / "urls.yml"
        config_file.write_text(FLAT_YAML)
        config = load_config(RunEnvironment(), config_file)
        assert [s.name for s in config.sites] == ["Home", "Docs"]

    def test_save_writes_flat_camel_case(self, tmp_path: Path):
        config = MonitorConfig.from_yaml(GROUPED_YAML)
        out = tmp_path / "sub" / "urls.yml"
        config.save(out)

        data = yaml.safe_load(out.read_text())
        assert "period" not in data
        assert data["sites"][0]["excludeSelectors"] == [".uptime"]
        assert "updateBaselineOnPass" in data["comparison"]

    def test_round_trip(self, tmp_path: Path):
        original = MonitorConfig.from_yaml(FLAT_YAML)
        out = tmp_path / "urls.yml"
        original.save(out)
        loaded = MonitorConfig.load(out)
        assert loaded.sites == original.sites
        assert loaded.comparison == original.comparison


def test_invalid_period_error_is_value_error():
    assert issubclass(InvalidPeriodFormat, ValueError)
