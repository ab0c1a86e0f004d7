"""Reminder sequence for a call that has started."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Protocol

from .calendar import RECENT_START_WINDOW, NormalizedEvent
from .presence import PresenceGate
from .schedule import DEFAULT_INTERVAL, clamp_wait, int_as_word, whole_minutes

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, title: str, subtitle: Optional[str], body: str,
             action_url: Optional[str] = None) -> None: ...


class Speaker(Protocol):
    def say(self, text: str) -> None: ...


class Tier(Enum):
    """Reminder checkpoints, valued by minutes after start."""

    START = 0
    TWO_MIN = 2
    FIVE_MIN = 5

    @property
    def offset(self) -> timedelta:
        return timedelta(minutes=self.value)


@dataclass
class ActiveEvent:
    """The started call being reminded about, with the tiers already handled."""

    summary: str
    start_time: datetime
    video_link: Optional[str] = None
    notified_at_start: bool = False
    notified_at_2min: bool = False
    notified_at_5min: bool = False

    @classmethod
    def from_event(cls, event: NormalizedEvent) -> "ActiveEvent":
        return cls(event.summary, event.start_time, event.video_link)

    @property
    def identity(self) -> tuple[str, datetime]:
        return (self.summary, self.start_time)

    def minutes_since_start(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        return whole_minutes(now - self.start_time)

    def is_done(self, tier: Tier) -> bool:
        return getattr(self, _FLAGS[tier])

    def mark(self, tier: Tier):
        setattr(self, _FLAGS[tier], True)


_FLAGS = {
    Tier.START: "notified_at_start",
    Tier.TWO_MIN: "notified_at_2min",
    Tier.FIVE_MIN: "notified_at_5min",
}


@dataclass(frozen=True)
class ReminderStep:
    """
    Result of one reminder evaluation.

    active is the event to hand back on the next call; fired lists the tiers
    that sent an alert this time.
    """

    active: Optional[ActiveEvent]
    wait: timedelta
    fired: tuple[Tier, ...] = ()


def alert_text(summary: str, minutes: int) -> tuple[str, str]:
    """Notification title and spoken message for a call started `minutes` ago."""
    if minutes < 1:
        return (
            "Call has just started",
            f'Your call "{summary}" has just started',
        )

    minute_word = "minute" if minutes == 1 else "minutes"
    return (
        f"Call started {minutes} {minute_word} ago",
        f'Your call "{summary}" started {int_as_word(minutes)} {minute_word} ago, JOIN IT NOW!',
    )


class ReminderEngine:
    """
    Drives the start, +2 and +5 minute alerts for one started call.

    The caller owns the ActiveEvent: it passes the current one into step() and
    keeps whatever comes back. Tiers whose checkpoint has passed by the time
    they are evaluated are skipped, never fired late.
    """

    def __init__(
        self,
        notifier: Notifier,
        speaker: Optional[Speaker] = None,
        presence: Optional[PresenceGate] = None,
        start_alert_respects_presence: bool = False,
        default_interval: timedelta = DEFAULT_INTERVAL,
    ):
        self.notifier = notifier
        self.speaker = speaker
        self.presence = presence or PresenceGate()
        self.start_alert_respects_presence = start_alert_respects_presence
        self.default_interval = default_interval

    def step(
        self,
        event: NormalizedEvent,
        active: Optional[ActiveEvent],
        now: Optional[datetime] = None,
    ) -> ReminderStep:
        """
        Evaluate reminders for a started event.

        Args:
            event: The earliest call, which has started
            active: The event tracked so far, if any
            now: Reference time

        Returns:
            ReminderStep with the (possibly new) tracked event and the wait
            until the next pending tier
        """
        now = now or datetime.now(timezone.utc)
        since_start = now - event.start_time

        if since_start < timedelta(0) or since_start > RECENT_START_WINDOW:
            return ReminderStep(active, self._residual_wait(active, now))

        if active is None or active.identity != (event.summary, event.start_time):
            return self._start(event, now)

        fired = self._check_reminders(active, now)
        return ReminderStep(active, self._residual_wait(active, now), fired)

    def _start(self, event: NormalizedEvent, now: datetime) -> ReminderStep:
        active = ActiveEvent.from_event(event)
        minutes = active.minutes_since_start(now)
        logger.info(
            'Starting event sequence for "%s" starting at %s...',
            active.summary,
            active.start_time.strftime("%Y-%m-%d %H:%M:%S %Z"),
        )

        self._send_alert(active, minutes, Tier.START)
        active.mark(Tier.START)

        # Checkpoints already behind us count as handled by the start alert
        for tier in (Tier.TWO_MIN, Tier.FIVE_MIN):
            if minutes >= tier.value:
                active.mark(tier)

        return ReminderStep(active, self._residual_wait(active, now), (Tier.START,))

    def _check_reminders(self, active: ActiveEvent, now: datetime) -> tuple[Tier, ...]:
        minutes = active.minutes_since_start(now)
        due = [
            tier for tier in (Tier.TWO_MIN, Tier.FIVE_MIN)
            if minutes >= tier.value and not active.is_done(tier)
        ]
        if not due:
            return ()

        latest = due[-1]
        for skipped in due[:-1]:
            logger.info(
                'Skipping %d minute reminder for "%s", already at minute %d',
                skipped.value, active.summary, minutes,
            )
            active.mark(skipped)

        self._send_alert(active, minutes, latest)
        active.mark(latest)
        return (latest,)

    def _residual_wait(self, active: Optional[ActiveEvent], now: datetime) -> timedelta:
        if active is not None:
            for tier in (Tier.TWO_MIN, Tier.FIVE_MIN):
                if not active.is_done(tier):
                    deadline = active.start_time + tier.offset
                    return clamp_wait(deadline - now, self.default_interval)
        return self.default_interval

    def _send_alert(self, active: ActiveEvent, minutes: int, tier: Tier):
        title, message = alert_text(active.summary, minutes)
        in_call = self.presence.query()

        notify = not in_call
        if tier is Tier.START and not self.start_alert_respects_presence:
            notify = True

        if notify:
            try:
                self.notifier.send(title, active.summary, "", active.video_link)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.warning("Notification failed: %s", e)
        else:
            logger.info(
                'Skipping %d minute notification for "%s", already in a call',
                minutes, active.summary,
            )

        if in_call or self.speaker is None:
            return
        try:
            self.speaker.say(message)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Speech failed: %s", e)
