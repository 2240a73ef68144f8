"""Periodic collection of posts from feeds."""

from __future__ import annotations

import logging
import re
import time
import uuid
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Callable

from .commands import Command, CommandError, State
from .database import DatabaseError, Queries, UniqueViolationError
from .models import Feed
from .rss import RSSFeed, fetch_feed

log = logging.getLogger(__name__)

Fetcher = Callable[[str], RSSFeed]

_UNITS = {
    "ns": Fraction(1, 10**9),
    "us": Fraction(1, 10**6),
    "µs": Fraction(1, 10**6),
    "μs": Fraction(1, 10**6),
    "ms": Fraction(1, 1000),
    "s": Fraction(1),
    "m": Fraction(60),
    "h": Fraction(3600),
}
_PART = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|h|m|s)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m`` or ``500ms``."""
    rest = text
    sign = 1
    if rest[:1] in "+-" and rest:
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration {text!r}")
    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _PART.match(rest, pos)
        if not match or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration {text!r}")
        total += Fraction(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return timedelta(microseconds=round(sign * total * 10**6))


def parse_pub_date(text: str) -> datetime | None:
    """Parse an RFC 1123 date with numeric zone, or return None."""
    try:
        return datetime.strptime(text, "%a, %d %b %Y %H:%M:%S %z")
    except ValueError:
        return None


def scrape_feed(queries: Queries, feed: Feed, fetch: Fetcher = fetch_feed) -> int:
    """Mark ``feed`` fetched, download it and store its posts; return the item count."""
    try:
        queries.mark_feed_fetched(feed.id)
    except DatabaseError as exc:
        log.warning("Couldn't mark feed %s fetched: %s", feed.name, exc)
        return 0
    try:
        data = fetch(feed.url)
    except Exception as exc:  # network and parse failures alike
        log.warning("Couldn't collect feed %s: %s", feed.name, exc)
        return 0
    for item in data.items:
        now = datetime.now(timezone.utc)
        try:
            queries.create_post(
                uuid.uuid4(), now, now, item.title, item.link,
                item.description, parse_pub_date(item.pub_date), feed.id,
            )
        except UniqueViolationError:
            continue
        except DatabaseError as exc:
            log.warning("Couldn't create post: %s", exc)
    log.info("Feed %s collected, %d posts found", feed.name, len(data.items))
    return len(data.items)


def scrape_feeds(state: State, fetch: Fetcher = fetch_feed) -> Feed | None:
    """Scrape the feed due next; return it, or None if there is none."""
    try:
        feed = state.queries.get_next_feed_to_fetch()
    except DatabaseError as exc:
        log.warning("%s", exc)
        return None
    log.info("Found a feed to fetch")
    scrape_feed(state.queries, feed, fetch)
    return feed


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape feeds forever at the requested interval."""
    if not 1 <= len(cmd.args) <= 2:
        raise CommandError(f"usage: {cmd.name} <time_between_reqs>")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid time duration: {exc}") from exc
    if interval <= timedelta(0):
        raise CommandError("invalid time duration: must be positive")
    seconds = interval.total_seconds()
    print(f"Collecting feeds every {cmd.args[0]}...")
    next_tick = time.monotonic()
    while True:
        scrape_feeds(state)
        next_tick += seconds
        now = time.monotonic()
        if next_tick < now:
            next_tick = now + seconds - (now - next_tick) % seconds
        time.sleep(next_tick - now)