"""Shared fixtures for nextcall tests."""

from datetime import datetime, timedelta, timezone

import pytest

NOW = datetime(2024, 3, 15, 13, 0, 0, tzinfo=timezone.utc)


def ics_time(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def make_ics(*events: str) -> str:
    """Wrap VEVENT bodies (property lines) in a VCALENDAR."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//test//nextcall//EN"]
    for body in events:
        lines.append("BEGIN:VEVENT")
        lines.extend(line for line in body.strip().splitlines())
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def make_event(
    start: datetime,
    summary: str = "Standup",
    url: str = "https://meet.google.com/abc-defg-hij",
) -> str:
    return f"SUMMARY:{summary}\nDTSTART:{ics_time(start)}\nURL:{url}"


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, title, subtitle=None, body="", action_url=None):
        if self.fail:
            raise RuntimeError("notification center unavailable")
        self.sent.append((title, subtitle, body, action_url))


class RecordingSpeaker:
    def __init__(self, fail: bool = False):
        self.said = []
        self.fail = fail

    def say(self, text):
        if self.fail:
            raise OSError("no audio device")
        self.said.append(text)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def speaker():
    return RecordingSpeaker()

