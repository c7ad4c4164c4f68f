"""CI environment settings for a single invocation."""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel

MANUAL_EVENTS = ("workflow_dispatch",)


class RunEnvironment(BaseModel):
    event_name: Optional[str] = None
    ci: bool = False
    server_url: str = "https://github.com"
    repository: Optional[str] = None
    run_id: Optional[str] = None
    output_path: Optional[str] = None
    webhook_url: Optional[str] = None
    webhook_url_always: Optional[str] = None
    urls_config: Optional[str] = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "RunEnvironment":
        """Build from environment variables (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ
        ci_flag = env.get("CI", "")
        return cls(
            event_name=env.get("GITHUB_EVENT_NAME") or None,
            ci=ci_flag.strip().lower() not in ("", "0", "false", "no"),
            server_url=env.get("GITHUB_SERVER_URL") or "https://github.com",
            repository=env.get("GITHUB_REPOSITORY") or None,
            run_id=env.get("GITHUB_RUN_ID") or None,
            output_path=env.get("GITHUB_OUTPUT") or None,
            webhook_url=env.get("WEBHOOK_URL") or None,
            webhook_url_always=env.get("WEBHOOK_URL_ALWAYS") or None,
            urls_config=env.get("URLS_CONFIG") or None,
        )

    @property
    def is_manual(self) -> bool:
        """Manual dispatches and local runs check every site."""
        return self.event_name in MANUAL_EVENTS or not self.ci

    @property
    def report_url(self) -> str:
        if not self.repository or not self.run_id:
            return ""
        return f"{self.server_url.rstrip('/')}/{self.repository}/actions/runs/{self.run_id}"

    def webhook_for_mode(self, mode: str) -> Optional[str]:
        return self.webhook_url if mode == "failure" else self.webhook_url_always
