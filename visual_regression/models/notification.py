"""Webhook notification data structures."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class NotifyMode(str, Enum):
    FAILURE = "failure"  # only non-passing results
    ALWAYS = "always"


class NotificationPayload(BaseModel):
    text: str
    blocks: list[dict[str, Any]] = Field(default_factory=list)


class DeliveryReport(BaseModel):
    mode: NotifyMode
    sent: int = 0
    attempted: int = 0
    skipped_reason: Optional[str] = None

    @property
    def failed(self) -> int:
        return self.attempted - self.sent
