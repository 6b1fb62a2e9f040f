from __future__ import annotations

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import List, Tuple

from .config import EmailSettings
from .models import TrackerGroup

LOGGER = logging.getLogger(__name__)

REPORT_TITLE = "Nyaa Downloader Report"


def count_new_episodes(tracker_groups: TrackerGroup) -> int:
    return sum(item.new_episodes for items in tracker_groups.values() for item in items)


def build_report_subject(tracker_groups: TrackerGroup) -> str:
    return f"{REPORT_TITLE} - {count_new_episodes(tracker_groups)} new episode(s)"


def build_report_html(tracker_groups: TrackerGroup) -> str:
    sections: List[str] = [f"<h1>{REPORT_TITLE}</h1>"]
    for group, series in tracker_groups.items():
        sections.append(f"<h2>{html.escape(group)}</h2>")
        if not series:
            sections.append("<p>No new episodes found.</p>")
            continue
        items = "".join(
            f"<li>{html.escape(item.title)}: {item.new_episodes} new episode(s)</li>" for item in series
        )
        sections.append(f"<p>The following series have new episodes:</p><ul>{items}</ul>")
    return "\n".join(sections)


def build_report_text(tracker_groups: TrackerGroup) -> str:
    lines: List[str] = [REPORT_TITLE, ""]
    for group, series in tracker_groups.items():
        lines.append(group)
        if not series:
            lines.append("  No new episodes found.")
        for item in series:
            lines.append(f"  - {item.title}: {item.new_episodes} new episode(s)")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


class EmailReporter:
    """Mail a summary of the episodes downloaded during a run."""

    def __init__(self, settings: EmailSettings) -> None:
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self.settings.host and self.settings.sender and self.settings.recipients)

    def build_message(self, tracker_groups: TrackerGroup) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.from_address or ""
        message["To"] = ", ".join(self.settings.recipients)
        message["Subject"] = build_report_subject(tracker_groups)
        message.set_content(build_report_text(tracker_groups))
        message.add_alternative(build_report_html(tracker_groups), subtype="html")
        return message

    def send_report(self, tracker_groups: TrackerGroup) -> bool:
        if not self.enabled:
            LOGGER.info("Email report disabled; SMTP host, sender or recipient missing")
            return False

        message = self.build_message(tracker_groups)
        try:
            with self._connect() as server:
                if self.settings.user and self.settings.password:
                    server.login(self.settings.user, self.settings.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error("Error sending email report via %s:%s - %s", *self._endpoint(), exc)
            return False

        LOGGER.info("Email report sent successfully.")
        return True

    def _endpoint(self) -> Tuple[str, int]:
        return str(self.settings.host), self.settings.port

    def _connect(self) -> smtplib.SMTP:
        host, port = self._endpoint()
        if self.settings.secure:
            return smtplib.SMTP_SSL(host, port, timeout=self.settings.timeout)

        server = smtplib.SMTP(host, port, timeout=self.settings.timeout)
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls()
            server.ehlo()
        return server
