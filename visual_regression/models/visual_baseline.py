"""Visual baseline registry data structures."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BaselineEntry(BaseModel):
    site_name: str
    period: str
    image_path: str  # relative path from screenshots_dir to the PNG
    captured_at: str  # ISO timestamp
    run_id: str
    image_hash: str  # SHA-256 hex digest
    width: int = 0
    height: int = 0


class BaselineRegistry(BaseModel):
    last_updated: str = ""
    baselines: dict[str, BaselineEntry] = Field(default_factory=dict)
    # key format: "{period}/{site_name}"
