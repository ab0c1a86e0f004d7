"""Pick the next call and decide when to look again."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from .calendar import CalendarError, NoUpcomingEvents, NormalizedEvent, fetch_events

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = timedelta(minutes=3)
FAR_FUTURE_ICON = "..."
# Countdown is shown once a call is this close
COUNTDOWN_HORIZON_MINUTES = 60

_ONE_MINUTE = timedelta(minutes=1)
_ZERO = timedelta(0)

_NUMBER_WORDS = (
    "zero", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine",
)


@dataclass(frozen=True)
class Sleep:
    """Wait up to this long before the next step."""

    duration: timedelta


@dataclass(frozen=True)
class EventStarted:
    """The next call has started; run the reminder sequence."""

    event: NormalizedEvent


@dataclass(frozen=True)
class StepDecision:
    """
    Outcome of one poll.

    icon_text is None when the display should keep what it shows, which
    happens when the feed couldn't be read.
    """

    icon_text: Optional[str]
    next_action: Union[Sleep, EventStarted]
    error: Optional[CalendarError] = None


def int_as_word(n: int) -> str:
    if 0 <= n < len(_NUMBER_WORDS):
        return _NUMBER_WORDS[n]
    return str(n)


def display_interval(seconds: int) -> str:
    """Human-readable duration for log lines, e.g. "45 minutes"."""
    minutes = seconds // 60
    hours = seconds // 3600
    days = seconds // 86400

    if seconds < 60:
        return "less than a minute"
    if seconds < 3600:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    if seconds < 86400:
        return f"{int_as_word(hours)} hour{'s' if hours != 1 else ''}"
    if seconds < 172800:
        remaining_hours = (seconds - 86400) // 3600
        plural = "s" if remaining_hours != 1 else ""
        return f"1 day, {int_as_word(remaining_hours)} hour{plural}"
    return f"{int_as_word(days)} day{'s' if days != 1 else ''}"


def clamp_wait(wait: timedelta, ceiling: timedelta = DEFAULT_INTERVAL) -> timedelta:
    """Keep a wait within [0, ceiling]."""
    return max(_ZERO, min(wait, ceiling))


def whole_minutes(delta: timedelta) -> int:
    """Floor of a duration in minutes: 61s is 1, -30s is -1."""
    return delta // _ONE_MINUTE


def time_to_next_minute(now: datetime) -> timedelta:
    """Time until the wall clock next reaches :00 seconds."""
    top = now.replace(second=0, microsecond=0) + _ONE_MINUTE
    return top - now


def decide(
    event: Optional[NormalizedEvent],
    now: Optional[datetime] = None,
    default_interval: timedelta = DEFAULT_INTERVAL,
) -> StepDecision:
    """
    Compute the display label and the next wait for the earliest call.

    - No call: far-future glyph, default interval.
    - More than an hour away: far-future glyph, wake at the latest exactly one
      hour before start.
    - Within the hour: minutes left, wake at the next minute boundary.
    - Started: elapsed minutes (negative), EventStarted.
    """
    now = now or datetime.now(timezone.utc)

    if event is None:
        return StepDecision(FAR_FUTURE_ICON, Sleep(default_interval))

    delta = event.start_time - now

    if delta < _ZERO:
        elapsed = whole_minutes(-delta)
        return StepDecision(str(-elapsed), EventStarted(event))

    minutes_until = whole_minutes(delta)

    if minutes_until <= COUNTDOWN_HORIZON_MINUTES:
        wait = min(delta, time_to_next_minute(now))
        return StepDecision(
            str(minutes_until), Sleep(clamp_wait(wait, default_interval)))

    until_countdown = delta - timedelta(minutes=COUNTDOWN_HORIZON_MINUTES)
    wait = min(default_interval, until_countdown)
    return StepDecision(FAR_FUTURE_ICON, Sleep(clamp_wait(wait, default_interval)))


class Scheduler:
    """
    Polls the feed and turns the earliest call into a StepDecision.

    Feed errors leave the display untouched and retry after the default
    interval. Each distinct error is passed to on_error once until a fetch
    succeeds again.
    """

    def __init__(
        self,
        url: str,
        fetch: Callable[..., list[NormalizedEvent]] = fetch_events,
        on_error: Optional[Callable[[CalendarError], None]] = None,
        default_interval: timedelta = DEFAULT_INTERVAL,
    ):
        self.url = url
        self.default_interval = default_interval
        self._fetch = fetch
        self._on_error = on_error
        self._last_error: Optional[str] = None

    def step(self, now: Optional[datetime] = None) -> StepDecision:
        now = now or datetime.now(timezone.utc)

        try:
            events = self._fetch(self.url, now=now)
        except NoUpcomingEvents:
            self._last_error = None
            logger.info("No upcoming calls with video links")
            return decide(None, now, self.default_interval)
        except CalendarError as e:
            self._report(e)
            return StepDecision(None, Sleep(self.default_interval), error=e)

        self._last_error = None
        event = events[0] if events else None
        decision = decide(event, now, self.default_interval)

        if event is not None and isinstance(decision.next_action, Sleep):
            logger.info(
                'Next call "%s" starts at %s in %s, waiting %s',
                event.summary,
                event.start_time.strftime("%Y-%m-%d %H:%M:%S %Z"),
                display_interval(int((event.start_time - now).total_seconds())),
                display_interval(int(decision.next_action.duration.total_seconds())),
            )

        return decision

    def _report(self, error: CalendarError):
        message = f"{type(error).__name__}: {error}"
        logger.error("Calendar fetch failed: %s", message)

        if message == self._last_error:
            return
        self._last_error = message

        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Error callback failed: %s", e)
