import uuid
from datetime import datetime, timedelta, timezone

import pytest

from gator.aggregate import handler_agg, parse_duration, parse_pub_date, scrape_feed, scrape_feeds
from gator.commands import Command, CommandError, State
from gator.config import Config
from gator.database import connect
from gator.rss import RSSFeed, RSSItem


@pytest.fixture
def db():
    q = connect(":memory:")
    yield q
    q.close()


def _setup(db):
    now = datetime.now(timezone.utc)
    user = db.create_user(uuid.uuid4(), now, now, "alice")
    return db.create_feed(uuid.uuid4(), now, now, "blog", "https://example.com/rss", user.id)


def test_parse_duration():
    assert parse_duration("1s") == timedelta(seconds=1)
    assert parse_duration("2m") == parse_duration("120s")
    assert parse_duration("1h30m") == parse_duration("90m")
    assert parse_duration("1.5h") == parse_duration("90m")
    assert parse_duration("0") == timedelta(0)
    assert parse_duration("-1s") == -parse_duration("1s")


@pytest.mark.parametrize("bad", ["", "abc", "5", "1x", ".s", "-"])
def test_parse_duration_errors(bad):
    with pytest.raises(ValueError):
        parse_duration(bad)


def test_parse_pub_date():
    parsed = parse_pub_date("Mon, 02 Jan 2006 15:04:05 -0700")
    assert (parsed.year, parsed.month, parsed.day, parsed.hour) == (2006, 1, 2, 15)
    assert parsed.utcoffset() == -timedelta(hours=7)
    assert parse_pub_date("yesterday") is None


def test_scrape_feed_stores_posts_and_skips_duplicates(db):
    feed = _setup(db)
    items = [
        RSSItem("A", "https://example.com/a", "d", "Mon, 02 Jan 2006 15:04:05 -0700"),
        RSSItem("A again", "https://example.com/a", "d", ""),
        RSSItem("B", "https://example.com/b", "", "bad"),
    ]
    count = scrape_feed(db, feed, lambda url: RSSFeed(items=items))
    assert count == 3
    user = db.get_user("alice")
    db.create_feed_follow(uuid.uuid4(), feed.created_at, feed.created_at, user.id, feed.id)
    posts = db.get_posts_for_user(user.id, 10)
    assert sorted(p.title for p in posts) == ["A", "B"]
    assert db.get_feed(feed.url).last_fetched_at is not None and True


def test_scrape_feed_fetch_failure(db):
    feed = _setup(db)

    def boom(url):
        raise OSError("down")

    assert scrape_feed(db, feed, boom) == 0
    assert db.get_feed(feed.url).last_fetched_at is not None


def test_scrape_feeds(db, tmp_path):
    feed = _setup(db)
    state = State(db, Config(path=tmp_path / "c.json"))
    urls = []
    result = scrape_feeds(state, lambda url: urls.append(url) or RSSFeed())
    assert result.id == feed.id
    assert urls == ["https://example.com/rss"]


def test_scrape_feeds_empty(db, tmp_path):
    assert scrape_feeds(State(db, Config(path=tmp_path / "c.json")), lambda u: RSSFeed()) is None


@pytest.mark.parametrize("args", [(), ("1s", "a", "b"), ("soon",), ("0s",)])
def test_handler_agg_errors(db, tmp_path, args):
    with pytest.raises(CommandError):
        handler_agg(State(db, Config(path=tmp_path / "c.json")), Command("agg", args))