"""Baseline comparator — thresholded pixel comparison of a capture against its baseline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageChops

from visual_regression.executor.baseline_store import BaselineStore
from visual_regression.models.config import ComparisonConfig, SiteConfig
from visual_regression.models.test_result import ComparisonResult

logger = logging.getLogger(__name__)

DIFF_HIGHLIGHT = (255, 0, 0)
PAD_COLOR = (255, 0, 255)


@dataclass
class PixelDiff:
    diff_pixels: int
    total_pixels: int
    mask: Image.Image  # "L" mode, 255 where pixels differ
    size: tuple[int, int]

    @property
    def ratio(self) -> float:
        return self.diff_pixels / self.total_pixels if self.total_pixels else 0.0


def _pad(img: Image.Image, size: tuple[int, int]) -> Image.Image:
    if img.size == size:
        return img
    canvas = Image.new("RGB", size, PAD_COLOR)
    canvas.paste(img, (0, 0))
    return canvas


def diff_images(baseline: Image.Image, current: Image.Image, threshold: float) -> PixelDiff:
    """Count pixels whose largest channel delta exceeds ``threshold`` (0..1).

    Images of different sizes are compared on a common canvas; every pixel
    outside the overlapping area counts as different.
    """
    baseline = baseline.convert("RGB")
    current = current.convert("RGB")
    size = (max(baseline.width, current.width), max(baseline.height, current.height))

    delta = ImageChops.difference(_pad(baseline, size), _pad(current, size))
    r, g, b = delta.split()
    channel_max = ImageChops.lighter(ImageChops.lighter(r, g), b)
    cutoff = int(round(threshold * 255))
    mask = channel_max.point(lambda v: 255 if v > cutoff else 0)

    if baseline.size != current.size:
        overlap_w = min(baseline.width, current.width)
        overlap_h = min(baseline.height, current.height)
        if overlap_w < size[0]:
            mask.paste(255, (overlap_w, 0, size[0], size[1]))
        if overlap_h < size[1]:
            mask.paste(255, (0, overlap_h, size[0], size[1]))

    diff_pixels = mask.histogram()[255]
    return PixelDiff(
        diff_pixels=diff_pixels,
        total_pixels=size[0] * size[1],
        mask=mask,
        size=size,
    )


def render_diff_image(current: Image.Image, diff: PixelDiff, output_path: Path) -> None:
    """Write the capture, faded to grey, with differing pixels in red."""
    backdrop = _pad(current.convert("RGB"), diff.size).convert("L").convert("RGB")
    backdrop = Image.blend(backdrop, Image.new("RGB", diff.size, (255, 255, 255)), 0.7)
    highlight = Image.new("RGB", diff.size, DIFF_HIGHLIGHT)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    Image.composite(highlight, backdrop, diff.mask).save(output_path)


class BaselineComparator:
    """Compares fresh captures to stored baselines, creating them on first run."""

    def __init__(self, config: ComparisonConfig, store: BaselineStore):
        self.config = config
        self.store = store

    def compare(self, site: SiteConfig, current_path: Path) -> ComparisonResult:
        baseline_path = self.store.baseline_path(site)
        diff_path = self.store.diff_path(site)

        if not self.store.has_baseline(site):
            self.store.store_baseline(site, current_path)
            logger.info("Created baseline for %s", site.name)
            return ComparisonResult(
                status="baseline_created",
                message="No baseline found; stored capture as baseline",
                baseline_path=str(baseline_path),
                current_path=str(current_path),
                baseline_updated=True,
            )

        with Image.open(baseline_path) as baseline, Image.open(current_path) as current:
            diff = diff_images(baseline, current, self.config.threshold)
            size_note = ""
            if baseline.size != current.size:
                size_note = (
                    f" (size changed from {baseline.width}x{baseline.height}"
                    f" to {current.width}x{current.height})"
                )
            passed = self._within_tolerance(diff)
            if not passed:
                render_diff_image(current, diff, diff_path)

        message = (
            f"{diff.diff_pixels} pixel(s) differ ({diff.ratio:.3%}), "
            f"allowed {self._tolerance_text()}{size_note}"
        )

        if passed:
            diff_path.unlink(missing_ok=True)
            updated = False
            if self.config.update_baseline_on_pass:
                self.store.store_baseline(site, current_path)
                updated = True
            logger.info("Comparison passed for %s: %s", site.name, message)
            return ComparisonResult(
                status="passed",
                diff_pixels=diff.diff_pixels,
                diff_ratio=diff.ratio,
                message=message,
                baseline_path=str(baseline_path),
                current_path=str(current_path),
                baseline_updated=updated,
            )

        logger.warning("Comparison failed for %s: %s", site.name, message)
        return ComparisonResult(
            status="failed",
            diff_pixels=diff.diff_pixels,
            diff_ratio=diff.ratio,
            message=message,
            baseline_path=str(baseline_path),
            current_path=str(current_path),
            diff_path=str(diff_path),
        )

    def _within_tolerance(self, diff: PixelDiff) -> bool:
        if diff.diff_pixels > self.config.max_diff_pixels:
            return False
        if self.config.max_diff_pixel_ratio is not None:
            return diff.ratio <= self.config.max_diff_pixel_ratio
        return True

    def _tolerance_text(self) -> str:
        text = f"{self.config.max_diff_pixels}"
        if self.config.max_diff_pixel_ratio is not None:
            text += f" / {self.config.max_diff_pixel_ratio:.3%}"
        return text
