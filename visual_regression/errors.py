"""Exception types raised by the visual regression monitor."""

from __future__ import annotations


class VisualRegressionError(Exception):
    """Base class for monitor errors."""


class ConfigError(VisualRegressionError):
    """The site configuration document is missing or invalid."""


class InvalidPeriodFormat(VisualRegressionError, ValueError):
    """A check period does not match ``<digits><m|h|d>``."""

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"Invalid period format: {period!r}")


class NavigationTimeout(VisualRegressionError):
    """Page navigation did not finish within the configured timeout."""

    def __init__(self, url: str, timeout_ms: int):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Navigation to {url} timed out after {timeout_ms}ms")


class StabilizationTimeout(VisualRegressionError):
    """Document height kept changing until the stabilization timeout."""

    def __init__(self, url: str, timeout_ms: int, last_height: int | None = None):
        self.url = url
        self.timeout_ms = timeout_ms
        self.last_height = last_height
        super().__init__(
            f"Layout of {url} did not stabilize within {timeout_ms}ms "
            f"(last height: {last_height})"
        )


class WebhookDeliveryError(VisualRegressionError):
    """A webhook POST failed or returned a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
