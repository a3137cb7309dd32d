"""GitHub Issues notification adapter.

Implements AlertChannelPort by opening a GitHub issue for each fired
alert, so recurring production failures land in the development
workflow.
"""

import logging

import httpx

from telltale.core.models import Alert
from telltale.core.ports import AlertChannelPort

logger = logging.getLogger(__name__)


class GitHubIssueAlertChannel(AlertChannelPort):
    """Creates GitHub issues for fired alerts."""

    def __init__(
        self,
        repository: str,
        github_token: str,
        api_base_url: str = "https://api.github.com",
        labels: list[str] | None = None,
        enabled: bool = True,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize GitHub Issues notification adapter.

        Args:
            repository: Repository as "owner/name".
            github_token: GitHub personal access token for authentication.
            api_base_url: Base URL for GitHub API (default: https://api.github.com).
            labels: Optional list of labels to apply to created issues.
            enabled: Whether automatic issue creation is switched on.
            timeout_seconds: Per-request timeout.
            client: Optional pre-built client.
        """
        self.repository = repository
        self.github_token = github_token
        self.api_base_url = api_base_url
        self.labels = labels or ["type:bug", "source:telltale"]
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def is_configured(self) -> bool:
        owner, _, name = self.repository.partition("/")
        return self.enabled and bool(owner and name and self.github_token)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client.

        Returns:
            httpx.AsyncClient configured with GitHub authentication.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_base_url,
                headers={
                    "Authorization": f"token {self.github_token}",
                    "Accept": "application/vnd.github.v3+json",
                },
                timeout=self.timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, alert: Alert) -> None:
        """Open an issue describing the alert."""
        try:
            client = await self._get_client()
            response = await client.post(
                f"/repos/{self.repository}/issues",
                json={
                    "title": self._format_issue_title(alert),
                    "body": self._format_issue_body(alert),
                    "labels": self.labels,
                },
            )

            if response.status_code == 201:
                issue_data = response.json()
                logger.info(
                    f"Created GitHub issue #{issue_data['number']}",
                    extra={
                        "rule_id": alert.rule.id,
                        "issue_number": issue_data["number"],
                        "issue_url": issue_data["html_url"],
                    },
                )
            else:
                logger.error(
                    f"Failed to create GitHub issue: {response.status_code}",
                    extra={"rule_id": alert.rule.id, "response": response.text},
                )

        except httpx.RequestError as e:
            logger.error(
                f"Failed to create GitHub issue: {e}",
                extra={"rule_id": alert.rule.id},
            )
            raise

    @staticmethod
    def _format_issue_title(alert: Alert) -> str:
        event = alert.event
        return f"[{alert.environment}] {event.exception.type}: {event.message[:60]}"

    @staticmethod
    def _format_issue_body(alert: Alert) -> str:
        """Format issue body as markdown."""
        event = alert.event
        lines = []

        lines.append("## Alert")
        lines.append(f"- **Rule**: {alert.rule.name} (`{alert.rule.id}`)")
        lines.append(f"- **Severity**: {alert.rule.severity.value}")
        lines.append(f"- **Environment**: {alert.environment}")
        lines.append(f"- **Fired At**: {alert.timestamp.isoformat()}")
        lines.append("")

        lines.append("## Error")
        lines.append(f"- **Type**: {event.exception.type}")
        lines.append(f"- **Level**: {event.level.value}")
        lines.append(f"- **User**: {event.user.id}")
        lines.append("```")
        lines.append(event.message)
        lines.append("```")
        lines.append("")

        if event.exception.stacktrace:
            lines.append("## Stack Trace")
            lines.append("```")
            for frame in event.exception.stacktrace:
                lines.append(
                    f"{frame.filename}:{frame.lineno}:{frame.colno} in {frame.function}"
                )
            lines.append("```")
            lines.append("")

        if event.breadcrumbs:
            lines.append("## Breadcrumbs")
            for crumb in event.breadcrumbs[-10:]:
                lines.append(
                    f"- `{crumb.timestamp.isoformat()}` [{crumb.category}] {crumb.message}"
                )
            lines.append("")

        lines.append("## Metadata")
        lines.append(f"- **Event ID**: {event.id}")
        lines.append(f"- **Grouping Hash**: `{event.grouping_hash}`")
        lines.append("")

        lines.append("_Generated by Telltale error tracking_")

        return "\n".join(lines)
