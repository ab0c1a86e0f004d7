#!/usr/bin/env python3
"""
NextCall Calendar Monitor

Watches the calendar feed, keeps a countdown to the next call, and alerts
when it starts.
"""

import logging
import queue
import signal
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..calendar import CalendarError
from ..config import Config
from ..notifications import Notifier
from ..presence import PresenceGate, command_probe
from ..reminders import ActiveEvent, ReminderEngine
from ..schedule import FAR_FUTURE_ICON, EventStarted, Scheduler, StepDecision
from ..speech import Speaker

logger = logging.getLogger(__name__)

# How often the display side looks for a new icon
DISPLAY_POLL_SECS = 0.2


class LatestValue:
    """One-slot mailbox: the writer never blocks, the reader sees the newest value."""

    def __init__(self):
        self._queue = queue.Queue(maxsize=1)

    def put(self, value):
        while True:
            try:
                self._queue.put_nowait(value)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    def get(self, timeout: Optional[float] = None):
        """Return the newest value, or None if nothing arrived in time."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class Monitor:
    """
    Runs poll → decide → wait on a worker thread.

    Icon text goes to `icons`; the tracked ActiveEvent is only touched by the
    worker.
    """

    def __init__(self, scheduler: Scheduler, engine: ReminderEngine):
        self.scheduler = scheduler
        self.engine = engine
        self.icons = LatestValue()
        self.active: Optional[ActiveEvent] = None
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_step(self, now: Optional[datetime] = None) -> tuple[StepDecision, timedelta]:
        """
        One iteration: fetch and decide, then remind if the call started.

        Returns:
            The scheduler decision and how long to wait before the next step
        """
        now = now or datetime.now(timezone.utc)
        decision = self.scheduler.step(now)

        if decision.icon_text is not None:
            self.icons.put(decision.icon_text)

        action = decision.next_action
        if isinstance(action, EventStarted):
            result = self.engine.step(action.event, self.active, now)
            self.active = result.active
            return decision, result.wait

        return decision, action.duration

    def _run(self):
        while not self._stop.is_set():
            try:
                _, wait = self.run_step()
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Monitor step failed")
                wait = self.scheduler.default_interval

            self._wake.wait(wait.total_seconds())
            self._wake.clear()

    def start(self):
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="nextcall-monitor", daemon=True)
        self._thread.start()

    def refresh(self):
        """Cut the current wait short."""
        self._wake.set()

    def stop(self, timeout: float = 5):
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


def install_refresh_signal(monitor: Monitor):
    """
    Make SIGUSR1 cut the monitor's current wait short.

    Returns:
        The previous handler, to restore on shutdown
    """
    return signal.signal(signal.SIGUSR1, lambda signum, frame: monitor.refresh())


def build_monitor(config: Config, notifier: Notifier) -> Monitor:
    """Wire the scheduler and reminder engine from the user's config."""
    interval = timedelta(seconds=config.default_interval_seconds)

    def on_error(error: CalendarError):
        notifier.send("Next Call", type(error).__name__, str(error))

    scheduler = Scheduler(config.ical_url, on_error=on_error, default_interval=interval)

    probe = command_probe(config.presence_command) if config.presence_command else None
    engine = ReminderEngine(
        notifier,
        speaker=Speaker(config.eleven_labs_key, config.voice),
        presence=PresenceGate(probe),
        start_alert_respects_presence=config.start_alert_respects_presence,
        default_interval=interval,
    )
    return Monitor(scheduler, engine)


def show_icon(text: str):
    """Terminal stand-in for the menu bar glyph."""
    glyph = "∞" if text == FAR_FUTURE_ICON else text
    print(f"\r   📅 {glyph:>4}   ", end="", flush=True)


def run(config: Config, display: Callable[[str], None] = show_icon):
    """Run the monitor until Ctrl+C."""
    notifier = Notifier()
    notifier.startup()

    if not config.ical_url:
        notifier.send("NextCall Configuration", None, "WARNING: ICS URL not configured")
        logger.warning("ICS URL not configured, set ical_url in nextcall.toml")
        display(FAR_FUTURE_ICON)
        while True:
            time.sleep(3600)

    monitor = build_monitor(config, notifier)
    monitor.start()
    display(FAR_FUTURE_ICON)

    # `kill -USR1 <pid>` polls the feed now
    old_handler = install_refresh_signal(monitor)

    try:
        while True:
            text = monitor.icons.get(timeout=DISPLAY_POLL_SECS)
            if text is not None:
                display(text)
    finally:
        signal.signal(signal.SIGUSR1, old_handler)
        monitor.stop()
        print()
