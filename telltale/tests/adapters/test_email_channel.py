"""Tests for EmailAlertChannel with a stubbed SMTP client."""

import pytest

from telltale.adapters.delivery import email as email_module
from telltale.adapters.delivery.email import EmailAlertChannel
from telltale.core.models import Alert, AlertCondition, AlertRule, ConditionType, Level


class _FakeSMTP:
    instances: list["_FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in: tuple[str, str] | None = None
        self.sent = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg):
        self.sent.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch):
    _FakeSMTP.instances = []
    monkeypatch.setattr(email_module.smtplib, "SMTP", _FakeSMTP)
    return _FakeSMTP


@pytest.fixture
def alert(make_event, clock) -> Alert:
    rule = AlertRule(
        id="new_error",
        name="New Error Type",
        condition=AlertCondition(type=ConditionType.NEW_ISSUE),
        severity=Level.WARNING,
    )
    return Alert(rule=rule, event=make_event(message="<b>bad</b>"), timestamp=clock(), environment="staging")


class TestEmailAlertChannel:
    @pytest.mark.asyncio
    async def test_sends_over_smtp(self, fake_smtp, alert):
        channel = EmailAlertChannel(
            smtp_host="smtp.example.com",
            sender="bot@example.com",
            recipients=["a@example.com", "b@example.com"],
            password="pw",
        )

        await channel.send(alert)

        [server] = fake_smtp.instances
        assert (server.host, server.port) == ("smtp.example.com", 587)
        assert server.started_tls is True
        assert server.logged_in == ("bot@example.com", "pw")
        [msg] = server.sent
        assert msg["Subject"] == "[WARNING] New Error Type"
        assert msg["To"] == "a@example.com, b@example.com"

    @pytest.mark.asyncio
    async def test_skips_tls_and_login_when_not_configured(self, fake_smtp, alert):
        channel = EmailAlertChannel(
            smtp_host="localhost",
            sender="bot@example.com",
            recipients=["a@example.com"],
            smtp_port=25,
            use_tls=False,
        )

        await channel.send(alert)

        [server] = fake_smtp.instances
        assert server.started_tls is False
        assert server.logged_in is None

    def test_html_body_is_escaped(self, alert):
        channel = EmailAlertChannel("h", "s@example.com", ["r@example.com"])
        html = channel.build_message(alert).get_payload()[1].get_payload(decode=True).decode()
        assert "&lt;b&gt;bad&lt;/b&gt;" in html

    def test_is_configured(self):
        assert not EmailAlertChannel("", "s@example.com", ["r@example.com"]).is_configured
        assert not EmailAlertChannel("h", "s@example.com", []).is_configured
        assert EmailAlertChannel("h", "s@example.com", ["r@example.com"]).is_configured
