"""Result notifier — formats check results as chat blocks and posts them to a webhook."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping

import httpx

from visual_regression.errors import WebhookDeliveryError
from visual_regression.models.config import SiteConfig
from visual_regression.models.notification import DeliveryReport, NotificationPayload, NotifyMode
from visual_regression.models.test_result import ResultEntry

logger = logging.getLogger(__name__)

TITLE_PATTERN = re.compile(r"^(.+?) \((.+?)\)$")
UNKNOWN_URL = "unknown"

# Asset kinds tried for the current image, most informative first
CURRENT_ASSET_KINDS = ("diff", "actual", "current")

DEFAULT_TIMEOUT_SECONDS = 10.0


def site_name_from_title(title: str) -> str:
    """Extract ``name`` from a ``"name (period)"`` title; unmatched titles are returned whole."""
    match = TITLE_PATTERN.match(title)
    return match.group(1) if match else title


def _image_blocks(image_url: str, label: str) -> list[dict]:
    return [
        {"type": "image", "image_url": image_url, "alt_text": label},
        {"type": "context", "elements": [{"type": "mrkdwn", "text": f"_{label}_"}]},
    ]


def build_notification(
    entry: ResultEntry,
    site_urls: Mapping[str, str],
    asset_map: Mapping[str, str],
    report_url: str = "",
) -> NotificationPayload:
    """Build the chat message for a single result."""
    name = site_name_from_title(entry.title)
    url = site_urls.get(name) or UNKNOWN_URL
    emoji = "✅" if entry.ok else "❌"
    status_text = "Passed" if entry.ok else "Failed"

    links = f"<{url}|View Page>"
    if report_url:
        links += f" | <{report_url}|View Report>"

    blocks: list[dict] = [
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": f"*{emoji} Visual Regression {status_text}: {name}*\n{links}",
            },
        }
    ]

    baseline_url = asset_map.get(f"{name}-baseline")
    if baseline_url:
        blocks.extend(_image_blocks(baseline_url, "Baseline"))

    current_url = next(
        (asset_map[f"{name}-{kind}"] for kind in CURRENT_ASSET_KINDS if asset_map.get(f"{name}-{kind}")),
        None,
    )
    if current_url:
        blocks.extend(_image_blocks(current_url, "Current" if entry.ok else "Current (with diff)"))

    if not entry.ok and entry.message:
        blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": entry.message}]})

    return NotificationPayload(text=f"Visual Regression {status_text}: {name}", blocks=blocks)


def build_notifications(
    entries: Iterable[ResultEntry],
    sites: Iterable[SiteConfig],
    asset_map: Mapping[str, str],
    mode: NotifyMode,
    report_url: str = "",
) -> list[NotificationPayload]:
    """Build one message per qualifying result, in result order."""
    site_urls = {s.name: s.url for s in sites}
    return [
        build_notification(entry, site_urls, asset_map, report_url)
        for entry in entries
        if not (mode == NotifyMode.FAILURE and entry.ok)
    ]


class WebhookNotifier:
    """Posts payloads to a webhook one at a time."""

    def __init__(self, webhook_url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def deliver(self, payloads: list[NotificationPayload], mode: NotifyMode) -> DeliveryReport:
        """Send every payload in order; a failed delivery never stops the rest."""
        report = DeliveryReport(mode=mode, attempted=len(payloads))
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for payload in payloads:
                try:
                    await self._post(client, payload)
                    report.sent += 1
                except WebhookDeliveryError as e:
                    logger.error('Webhook failed for "%s": %s', payload.text, e)
        logger.info("Sent %d/%d notification(s) in %s mode.",
                    report.sent, report.attempted, mode.value)
        return report

    async def _post(self, client: httpx.AsyncClient, payload: NotificationPayload) -> None:
        try:
            response = await client.post(self.webhook_url, json=payload.model_dump())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise WebhookDeliveryError(str(e)) from e
        if not response.is_success:
            raise WebhookDeliveryError(
                f"Webhook returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )


async def notify(
    entries: list[ResultEntry] | None,
    sites: Iterable[SiteConfig],
    asset_map: Mapping[str, str],
    mode: NotifyMode | str,
    webhook_url: str | None,
    report_url: str = "",
) -> DeliveryReport:
    """Report results to the webhook for ``mode``.

    A missing webhook URL or results summary is not an error: the report comes
    back with ``skipped_reason`` set and nothing is sent.
    """
    mode = NotifyMode(mode)
    if not webhook_url:
        reason = f"No webhook URL configured for mode: {mode.value}"
        logger.info(reason)
        return DeliveryReport(mode=mode, skipped_reason=reason)
    if entries is None:
        reason = "No test results found, skipping notification."
        logger.info(reason)
        return DeliveryReport(mode=mode, skipped_reason=reason)

    payloads = build_notifications(entries, sites, asset_map, mode, report_url)
    if not payloads:
        reason = f"No notifications to send (mode: {mode.value})."
        logger.info(reason)
        return DeliveryReport(mode=mode, skipped_reason=reason)

    return await WebhookNotifier(webhook_url).deliver(payloads, mode)
