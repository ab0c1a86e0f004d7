"""iCalendar feed integration for call detection."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from icalendar.parser import Contentlines
from icalendar.prop import vText

from .config import HTTP_TIMEOUT_SECS

# Events that started up to this long ago are still "upcoming"
RECENT_START_WINDOW = timedelta(minutes=10)

# Checked in this order, first http value wins
DIRECT_LINK_PROPERTIES = ("X-GOOGLE-CONFERENCE", "URL", "LOCATION")
CONFERENCE_DOMAINS = ("zoom.us", "meet.google.com", "teams.microsoft.com")

# Properties whose values are RFC 5545 TEXT and need unescaping
TEXT_PROPERTIES = {"SUMMARY", "DESCRIPTION", "LOCATION"}

_ZONED_RE = re.compile(r"\d{8}T\d{6}")
_DATE_RE = re.compile(r"\d{8}")


class CalendarError(Exception):
    """Base error for feed retrieval and parsing."""


class HttpStatusError(CalendarError):
    """The feed URL answered with a non-success status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"{status}: {body}")


class InvalidFormatError(CalendarError):
    """The response is not a usable iCalendar document."""


class NetworkError(CalendarError):
    """The feed could not be reached."""


class NoUpcomingEvents(CalendarError):
    """The feed parsed fine but no event with a video link is coming up."""

    def __init__(self):
        super().__init__("No upcoming calls with video links")


@dataclass(frozen=True)
class Property:
    """One property value with its parameters (e.g. TZID)."""

    value: str
    params: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CalendarEntry:
    """A raw VEVENT: property name to the values it carried."""

    properties: Mapping[str, tuple[Property, ...]]

    @classmethod
    def from_properties(cls, properties: dict[str, list[Property]]) -> "CalendarEntry":
        return cls(MappingProxyType(
            {name.upper(): tuple(values) for name, values in properties.items()}
        ))

    def get_property(self, name: str) -> Optional[Property]:
        values = self.properties.get(name.upper())
        return values[0] if values else None

    def get(self, name: str) -> Optional[str]:
        prop = self.get_property(name)
        return prop.value if prop else None


@dataclass(frozen=True)
class NormalizedEvent:
    """A calendar event with an absolute start time."""

    start_time: datetime
    summary: str
    video_link: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: CalendarEntry) -> Optional["NormalizedEvent"]:
        """Build from a raw entry, or None if DTSTART doesn't parse."""
        dtstart = entry.get_property("DTSTART")
        if dtstart is None:
            return None

        start_time = parse_datetime(dtstart.value, dtstart.params.get("TZID"))
        if start_time is None:
            return None

        return cls(
            start_time=start_time,
            summary=entry.get("SUMMARY") or "Unknown",
            video_link=get_video_link(entry),
        )


# ---------------------------------------------------------------------------
# Date-time normalization
# ---------------------------------------------------------------------------


def _parse_naive(digits: str) -> Optional[datetime]:
    if not _ZONED_RE.fullmatch(digits):
        return None
    try:
        return datetime.strptime(digits, "%Y%m%dT%H%M%S")
    except ValueError:
        return None


def _get_zone(tzid: str) -> Optional[ZoneInfo]:
    try:
        return ZoneInfo(tzid.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # OSError covers ids that name a directory in the zone database (TZID=America)
        return None


def _earliest_instant(naive: datetime, zone: ZoneInfo) -> datetime:
    """
    Resolve a wall-clock time in a zone to UTC.

    Ambiguous times (DST fall-back) and nonexistent times (spring-forward)
    get a different offset for each fold; the earlier instant wins.
    """
    return min(
        naive.replace(tzinfo=zone, fold=fold).astimezone(timezone.utc)
        for fold in (0, 1)
    )


def parse_datetime(value: str, tzid: Optional[str] = None) -> Optional[datetime]:
    """
    Normalize an iCalendar DATE or DATE-TIME to an aware UTC datetime.

    Handles, in order:
    - Zoned local time: 20240315T090000 with TZID=America/New_York
    - UTC: 20240315T130000Z
    - Date only: 20240315 (midnight UTC)

    Args:
        value: Raw property value, separators allowed (2024-03-15T09:00:00)
        tzid: TZID parameter of the property, if any

    Returns:
        UTC datetime, or None if the value can't be interpreted
    """
    cleaned = value.strip().replace("-", "").replace(":", "")

    if tzid:
        if "T" in cleaned and len(cleaned) >= 15:
            naive = _parse_naive(cleaned[:15])
            zone = _get_zone(tzid)
            if naive is not None and zone is not None:
                return _earliest_instant(naive, zone)
        return None

    if "T" in cleaned and cleaned.endswith("Z"):
        naive = _parse_naive(cleaned[:-1])
        if naive is not None:
            return naive.replace(tzinfo=timezone.utc)

    if _DATE_RE.fullmatch(cleaned):
        try:
            return datetime.strptime(cleaned, "%Y%m%d").replace(tzinfo=timezone.utc)
        except ValueError:
            return None

    return None


# ---------------------------------------------------------------------------
# Video link detection
# ---------------------------------------------------------------------------


def link_from_description(description: Optional[str]) -> Optional[str]:
    """Pull a conferencing URL out of free text, first matching line wins."""
    if not description:
        return None

    for line in description.splitlines():
        if not any(domain in line for domain in CONFERENCE_DOMAINS):
            continue
        start = line.find("http")
        if start == -1:
            continue
        return line[start:].split(maxsplit=1)[0]

    return None


def get_video_link(entry: CalendarEntry) -> Optional[str]:
    """
    Find the joinable URL for an entry.

    Checks X-GOOGLE-CONFERENCE, then URL, then LOCATION for a value starting
    with http; falls back to scanning DESCRIPTION for a known conferencing
    domain (Zoom, Google Meet, Teams).
    """
    for name in DIRECT_LINK_PROPERTIES:
        value = entry.get(name)
        if value and value.startswith("http"):
            return value

    return link_from_description(entry.get("DESCRIPTION"))


# ---------------------------------------------------------------------------
# Feed parsing
# ---------------------------------------------------------------------------


def _flatten_params(params) -> dict[str, str]:
    flat = {}
    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = value[0]
        flat[key.upper()] = str(value)
    return flat


def parse_feed(content: bytes | str) -> list[CalendarEntry]:
    """
    Split an iCalendar document into raw VEVENT entries.

    Properties of nested components (VALARM) are not attached to the event.

    Raises:
        InvalidFormatError: If the document isn't a well-formed VCALENDAR
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig", errors="replace")
    content = content.removeprefix("\ufeff")

    try:
        lines = Contentlines.from_ical(content)
    except ValueError as e:
        raise InvalidFormatError(str(e)) from e

    entries = []
    stack = []
    current = None
    seen_calendar = False

    for line in lines:
        if not line.strip():
            continue
        try:
            name, params, value = line.parts()
        except ValueError as e:
            raise InvalidFormatError(str(e)) from e

        name = name.upper()
        if name == "BEGIN":
            component = value.strip().upper()
            if not stack and component != "VCALENDAR":
                raise InvalidFormatError(f"Expected BEGIN:VCALENDAR, got BEGIN:{value}")
            seen_calendar = True
            stack.append(component)
            if component == "VEVENT":
                current = {}
        elif name == "END":
            component = value.strip().upper()
            if not stack or stack[-1] != component:
                raise InvalidFormatError(f"Unexpected END:{value}")
            stack.pop()
            if component == "VEVENT" and current is not None:
                entries.append(CalendarEntry.from_properties(current))
                current = None
        elif current is not None and stack[-1] == "VEVENT":
            if name in TEXT_PROPERTIES:
                value = str(vText.from_ical(value))
            current.setdefault(name, []).append(
                Property(value, MappingProxyType(_flatten_params(params)))
            )
        elif not stack:
            raise InvalidFormatError(f"Property {name} outside of VCALENDAR")

    if not seen_calendar:
        raise InvalidFormatError("No VCALENDAR found")
    if stack:
        raise InvalidFormatError(f"Unterminated component: {stack[-1]}")

    return entries


def select_events(
    entries: list[CalendarEntry],
    now: Optional[datetime] = None,
) -> list[NormalizedEvent]:
    """
    Keep events with a video link that start no earlier than 10 minutes ago.

    Returns:
        Qualifying events sorted by start time
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - RECENT_START_WINDOW

    events = []
    for entry in entries:
        event = NormalizedEvent.from_entry(entry)
        if event is None or event.video_link is None:
            continue
        if event.start_time >= cutoff:
            events.append(event)

    events.sort(key=lambda e: e.start_time)
    return events


def _normalize_url(url: str) -> str:
    url = url.strip()
    if url.lower().startswith("webcal://"):
        return "https://" + url[len("webcal://"):]
    return url


def download_feed(url: str, client: Optional[httpx.Client] = None) -> bytes:
    """
    Download the raw iCalendar feed.

    Raises:
        NetworkError: On connection problems or an unusable URL
        HttpStatusError: On any non-2xx response
    """
    url = _normalize_url(url)
    try:
        if client is None:
            with httpx.Client(timeout=HTTP_TIMEOUT_SECS, follow_redirects=True) as c:
                resp = c.get(url)
        else:
            resp = client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise NetworkError(str(e) or type(e).__name__) from e

    if not resp.is_success:
        raise HttpStatusError(resp.status_code, resp.text)

    return resp.content


def fetch_events(
    url: str,
    now: Optional[datetime] = None,
    client: Optional[httpx.Client] = None,
) -> list[NormalizedEvent]:
    """
    Fetch the feed and return upcoming calls.

    Args:
        url: iCalendar feed URL (http, https or webcal)
        now: Reference time, defaults to the current UTC time
        client: Optional httpx client to reuse

    Returns:
        Non-empty list of events with video links, earliest first

    Raises:
        CalendarError: NetworkError, HttpStatusError, InvalidFormatError, or
            NoUpcomingEvents when nothing qualifies
    """
    content = download_feed(url, client)
    events = select_events(parse_feed(content), now)
    if not events:
        raise NoUpcomingEvents()
    return events


def get_next_event(
    url: str,
    now: Optional[datetime] = None,
    client: Optional[httpx.Client] = None,
) -> NormalizedEvent:
    """Return the earliest upcoming call in the feed."""
    return fetch_events(url, now, client)[0]
