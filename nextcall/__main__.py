"""NextCall CLI entry point."""

import argparse
import sys
from datetime import datetime, timedelta, timezone

from .config import load_config
from .daemon.monitor import run
from .logger import configure_logging
from .schedule import DEFAULT_INTERVAL, EventStarted, Scheduler


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nextcall",
        description="Countdown to your next video call, with alerts when it starts.",
    )
    parser.add_argument("--url", help="iCalendar feed URL (overrides nextcall.toml)")
    parser.add_argument("--once", action="store_true",
                        help="Check the calendar once, print the result and exit")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser.parse_args(argv)


def check_once(url: str, interval: timedelta = DEFAULT_INTERVAL) -> int:
    """Run a single scheduler step and print what it decided."""
    scheduler = Scheduler(url, default_interval=interval)
    decision = scheduler.step(datetime.now(timezone.utc))

    if decision.error is not None:
        print(f"❌ {type(decision.error).__name__}: {decision.error}")
        return 1

    action = decision.next_action
    if isinstance(action, EventStarted):
        print(f"🔔 {action.event.summary} has started ({decision.icon_text} min)")
        if action.event.video_link:
            print(f"   {action.event.video_link}")
        return 0

    print(f"📅 {decision.icon_text}  (next check in {int(action.duration.total_seconds())}s)")
    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config()
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    if args.url:
        config.ical_url = args.url

    # The daemon owns stdout for its status line, so it logs to file only
    configure_logging(args.log_level, console=args.once)

    if args.once:
        if not config.ical_url:
            print("❌ ICS URL not configured\n   Set ical_url in nextcall.toml or pass --url")
            sys.exit(1)
        interval = timedelta(seconds=config.default_interval_seconds)
        sys.exit(check_once(config.ical_url, interval))

    try:
        run(config)
    except KeyboardInterrupt:
        print("\n👋 Stopped")


if __name__ == "__main__":
    main()
