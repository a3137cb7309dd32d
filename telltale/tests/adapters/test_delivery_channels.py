"""Tests for HTTP delivery adapters using httpx.MockTransport."""

import json

import httpx
import pytest

from telltale.adapters.delivery.collector import CollectorEventSink
from telltale.adapters.delivery.github_issues import GitHubIssueAlertChannel
from telltale.adapters.delivery.slack import SlackAlertChannel
from telltale.adapters.delivery.webhook import WebhookAlertChannel
from telltale.core.models import (
    Alert,
    AlertChannel,
    AlertCondition,
    AlertRule,
    ConditionType,
    Level,
)


class _Recorder:
    """Collects requests and answers with a fixed status."""

    def __init__(self, status_code: int = 200, body: dict | None = None):
        self.status_code = status_code
        self.body = body or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    def client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), **kwargs)


@pytest.fixture
def alert(make_event, clock) -> Alert:
    rule = AlertRule(
        id="critical_error",
        name="Critical Error",
        condition=AlertCondition(type=ConditionType.CUSTOM),
        severity=Level.CRITICAL,
        channels=(AlertChannel.SLACK,),
    )
    return Alert(
        rule=rule,
        event=make_event(message="critical: db down", user_id="u-7"),
        timestamp=clock(),
        environment="production",
    )


class TestCollectorEventSink:
    @pytest.mark.asyncio
    async def test_posts_camel_case_event(self, make_event):
        recorder = _Recorder()
        sink = CollectorEventSink("https://collector.example.com/", client=recorder.client())
        event = make_event()

        await sink.send_event(event)

        [request] = recorder.requests
        assert request.method == "POST"
        assert str(request.url) == "https://collector.example.com/api/errors"
        payload = json.loads(request.content)
        assert payload["id"] == event.id
        assert payload["groupingHash"] == event.grouping_hash
        assert payload["user"]["userAgent"] == "python/test"

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self, make_event):
        sink = CollectorEventSink("https://c.example.com", client=_Recorder(503).client())
        with pytest.raises(httpx.HTTPStatusError):
            await sink.send_event(make_event())

    def test_not_configured_without_dsn(self):
        assert CollectorEventSink("").is_configured is False
        assert CollectorEventSink("https://c.example.com").is_configured is True

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        sink = CollectorEventSink("https://c.example.com", client=_Recorder().client())
        await sink.close()
        assert sink._client is None


class TestSlackAlertChannel:
    @pytest.mark.asyncio
    async def test_envelope_shape(self, alert):
        recorder = _Recorder()
        channel = SlackAlertChannel(
            "https://hooks.slack.example/T/B/X",
            channel="#alerts",
            client=recorder.client(),
        )

        await channel.send(alert)

        payload = json.loads(recorder.requests[0].content)
        assert payload["channel"] == "#alerts"
        assert payload["username"] == "ErrorBot"
        assert payload["icon_emoji"] == "🚨"
        assert payload["text"] == "🚨 Critical Error"
        [attachment] = payload["attachments"]
        assert attachment["color"] == "danger"
        fields = {f["title"]: f["value"] for f in attachment["fields"]}
        assert fields == {
            "Error Message": "critical: db down",
            "Environment": "production",
            "User": "u-7",
        }
        assert attachment["ts"] == int(alert.timestamp.timestamp())

    def test_warning_color_for_non_critical(self, alert):
        from dataclasses import replace

        warning = replace(alert, rule=replace(alert.rule, severity=Level.WARNING))
        message = SlackAlertChannel("https://hooks").format_message(warning)
        assert message["attachments"][0]["color"] == "warning"

    def test_user_field_prefers_username(self, alert):
        from dataclasses import replace

        event = replace(alert.event, user=replace(alert.event.user, username="kim"))
        message = SlackAlertChannel("https://hooks").format_message(replace(alert, event=event))
        fields = {f["title"]: f["value"] for f in message["attachments"][0]["fields"]}
        assert fields["User"] == "kim"

    def test_requires_webhook_and_enabled(self):
        assert not SlackAlertChannel("").is_configured
        assert not SlackAlertChannel("https://hooks", enabled=False).is_configured
        assert SlackAlertChannel("https://hooks").is_configured


class TestWebhookAlertChannel:
    @pytest.mark.asyncio
    async def test_uses_configured_method_and_headers(self, alert):
        recorder = _Recorder()
        channel = WebhookAlertChannel(
            "https://ops.example.com/hook",
            method="put",
            headers={"X-Token": "abc"},
            client=recorder.client(),
        )

        await channel.send(alert)

        [request] = recorder.requests
        assert request.method == "PUT"
        assert request.headers["X-Token"] == "abc"
        assert request.headers["Content-Type"] == "application/json"
        payload = json.loads(request.content)
        assert payload["rule"]["id"] == "critical_error"
        assert payload["environment"] == "production"
        assert payload["event"]["message"] == "critical: db down"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, alert):
        channel = WebhookAlertChannel("https://ops.example.com", client=_Recorder(500).client())
        with pytest.raises(httpx.HTTPStatusError):
            await channel.send(alert)


class TestGitHubIssueAlertChannel:
    @pytest.mark.asyncio
    async def test_creates_issue(self, alert):
        recorder = _Recorder(201, {"number": 12, "html_url": "https://github.com/o/r/issues/12"})
        channel = GitHubIssueAlertChannel(
            "octo/app",
            "token",
            client=recorder.client(base_url="https://api.github.com"),
        )

        await channel.send(alert)

        [request] = recorder.requests
        assert request.url.path == "/repos/octo/app/issues"
        payload = json.loads(request.content)
        assert payload["title"].startswith("[production] Error: critical: db down")
        assert payload["labels"] == ["type:bug", "source:telltale"]
        assert "Critical Error" in payload["body"]

    @pytest.mark.asyncio
    async def test_failure_status_is_logged_not_raised(self, alert, caplog):
        channel = GitHubIssueAlertChannel(
            "octo/app",
            "token",
            client=_Recorder(422).client(base_url="https://api.github.com"),
        )

        await channel.send(alert)

        assert "Failed to create GitHub issue: 422" in caplog.text

    @pytest.mark.parametrize(
        "repository,token,expected",
        [("octo/app", "t", True), ("octo", "t", False), ("octo/app", "", False)],
    )
    def test_is_configured(self, repository, token, expected):
        assert GitHubIssueAlertChannel(repository, token).is_configured is expected
