"""On-disk storage for baseline, current and diff screenshots."""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import time
from pathlib import Path

from PIL import Image

from visual_regression.models.config import SiteConfig
from visual_regression.models.visual_baseline import BaselineEntry, BaselineRegistry

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "registry.json"


class BaselineStore:
    """Manages baseline images under ``<screenshots_dir>/<period>/``."""

    def __init__(self, screenshots_dir: Path, run_id: str = ""):
        self.screenshots_dir = Path(screenshots_dir)
        self.registry_path = self.screenshots_dir / REGISTRY_FILENAME
        self.run_id = run_id

    def site_dir(self, site: SiteConfig) -> Path:
        return self.screenshots_dir / site.period

    def baseline_path(self, site: SiteConfig) -> Path:
        return self.site_dir(site) / f"{site.name}-baseline.png"

    def current_path(self, site: SiteConfig) -> Path:
        return self.site_dir(site) / f"{site.name}-current.png"

    def diff_path(self, site: SiteConfig) -> Path:
        return self.site_dir(site) / f"{site.name}-diff.png"

    def has_baseline(self, site: SiteConfig) -> bool:
        return self.baseline_path(site).exists()

    def load(self) -> BaselineRegistry:
        """Load registry from disk, or create a new one."""
        if self.registry_path.exists():
            try:
                with open(self.registry_path) as f:
                    data = json.load(f)
                return BaselineRegistry(**data)
            except Exception as e:
                logger.warning("Failed to load baseline registry: %s. Creating new.", e)
        return BaselineRegistry()

    def save(self, registry: BaselineRegistry) -> None:
        """Persist registry to disk."""
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        registry.last_updated = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        with open(self.registry_path, "w") as f:
            json.dump(registry.model_dump(), f, indent=2)
        logger.debug("Saved baseline registry to %s", self.registry_path)

    def store_baseline(self, site: SiteConfig, source_image_path: Path) -> BaselineEntry:
        """Copy a capture into place as the site's baseline and register it."""
        dest = self.baseline_path(site)
        dest.parent.mkdir(parents=True, exist_ok=True)
        if Path(source_image_path).resolve() != dest.resolve():
            shutil.copy2(source_image_path, dest)

        image_hash = hashlib.sha256(dest.read_bytes()).hexdigest()
        with Image.open(dest) as img:
            width, height = img.size

        entry = BaselineEntry(
            site_name=site.name,
            period=site.period,
            image_path=str(dest.relative_to(self.screenshots_dir)),
            captured_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            run_id=self.run_id,
            image_hash=image_hash,
            width=width,
            height=height,
        )

        registry = self.load()
        registry.baselines[f"{site.period}/{site.name}"] = entry
        self.save(registry)
        logger.info("Stored baseline for %s (%dx%d)", site.title, width, height)
        return entry
