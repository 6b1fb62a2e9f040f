from __future__ import annotations

import smtplib
from typing import Any, List

from nyaa_downloader.config import EmailSettings
from nyaa_downloader.models import TrackerData
from nyaa_downloader.notifications import (
    EmailReporter,
    build_report_html,
    build_report_subject,
    build_report_text,
)

GROUPS = {
    "Anime": [TrackerData(title="Show <Uncut>", new_episodes=2), TrackerData(title="Other", new_episodes=1)],
    "Movies": [],
}


class FakeSMTP:
    instances: List["FakeSMTP"] = []
    fail_send = False

    def __init__(self, host: str, port: int, timeout: int = 10) -> None:
        self.host = host
        self.port = port
        self.calls: List[Any] = []
        self.sent: List[Any] = []
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.calls.append("quit")

    def ehlo(self) -> None:
        self.calls.append("ehlo")

    def has_extn(self, name: str) -> bool:
        return name == "starttls"

    def starttls(self) -> None:
        self.calls.append("starttls")

    def login(self, user: str, password: str) -> None:
        self.calls.append(("login", user, password))

    def send_message(self, message: Any) -> None:
        if FakeSMTP.fail_send:
            raise smtplib.SMTPException("rejected")
        self.sent.append(message)


def _settings(**overrides: Any) -> EmailSettings:
    values = {
        "host": "smtp.example.com",
        "port": 587,
        "user": "bot",
        "password": "secret",
        "sender": "bot@example.com",
        "recipients": ["me@example.com"],
    }
    values.update(overrides)
    return EmailSettings(**values)


def test_report_html_lists_series_per_group() -> None:
    body = build_report_html(GROUPS)

    assert "<h1>Nyaa Downloader Report</h1>" in body
    assert "<h2>Anime</h2>" in body
    assert "<li>Show &lt;Uncut&gt;: 2 new episode(s)</li>" in body
    assert "<h2>Movies</h2>\n<p>No new episodes found.</p>" in body


def test_report_subject_and_text() -> None:
    assert build_report_subject(GROUPS) == "Nyaa Downloader Report - 3 new episode(s)"
    text = build_report_text(GROUPS)
    assert "  - Other: 1 new episode(s)" in text
    assert "  No new episodes found." in text


def test_disabled_reporter_does_not_connect(monkeypatch) -> None:
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    reporter = EmailReporter(_settings(recipients=[]))

    assert reporter.enabled is False
    assert reporter.send_report(GROUPS) is False
    assert FakeSMTP.instances == []


def test_send_report_uses_starttls_and_login(monkeypatch) -> None:
    FakeSMTP.instances = []
    FakeSMTP.fail_send = False
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    reporter = EmailReporter(_settings())

    assert reporter.send_report(GROUPS) is True

    server = FakeSMTP.instances[0]
    assert (server.host, server.port) == ("smtp.example.com", 587)
    assert server.calls[:3] == ["ehlo", "starttls", "ehlo"]
    assert ("login", "bot", "secret") in server.calls
    message = server.sent[0]
    assert message["To"] == "me@example.com"
    assert message["Subject"] == "Nyaa Downloader Report - 3 new episode(s)"
    assert "Nyaa Downloader" in message["From"]


def test_send_report_uses_ssl_when_secure(monkeypatch) -> None:
    FakeSMTP.instances = []
    FakeSMTP.fail_send = False
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    reporter = EmailReporter(_settings(port=465, secure=True))

    assert reporter.send_report(GROUPS) is True
    assert FakeSMTP.instances[0].calls[0] == ("login", "bot", "secret")


def test_send_report_failure_returns_false(monkeypatch) -> None:
    FakeSMTP.instances = []
    FakeSMTP.fail_send = True
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    try:
        assert EmailReporter(_settings()).send_report(GROUPS) is False
    finally:
        FakeSMTP.fail_send = False
