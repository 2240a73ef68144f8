"""SQLite storage for users, feeds, follows and posts."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar
from uuid import UUID

from .models import FeedFollowRow, Feed, FeedSummary, Post, PostWithFeed, User

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
"""

_FEED_COLUMNS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_POST_COLUMNS = "id, created_at, updated_at, title, url, description, published_at, feed_id"


class DatabaseError(Exception):
    """A query failed."""


class NoRowsError(DatabaseError):
    """A query that must return one row returned none."""


class UniqueViolationError(DatabaseError):
    """An insert clashed with a unique constraint."""


def _to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _translated() -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as exc:
        message = str(exc)
        if message.startswith("UNIQUE constraint failed"):
            raise UniqueViolationError(
                f"duplicate key value violates unique constraint: {message}"
            ) from exc
        raise DatabaseError(message) from exc
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _user(row: tuple) -> User:
    return User(UUID(row[0]), _from_db_time(row[1]), _from_db_time(row[2]), row[3])


def _feed(row: tuple) -> Feed:
    return Feed(
        UUID(row[0]),
        _from_db_time(row[1]),
        _from_db_time(row[2]),
        row[3],
        row[4],
        UUID(row[5]),
        _from_db_time(row[6]),
    )


def _follow_row(row: tuple) -> FeedFollowRow:
    return FeedFollowRow(
        UUID(row[0]),
        _from_db_time(row[1]),
        _from_db_time(row[2]),
        UUID(row[3]),
        UUID(row[4]),
        row[5],
        row[6],
    )


def _post(row: tuple) -> Post:
    return Post(
        UUID(row[0]),
        _from_db_time(row[1]),
        _from_db_time(row[2]),
        row[3],
        row[4],
        row[5],
        _from_db_time(row[6]),
        UUID(row[7]),
    )


def _post_with_feed(row: tuple) -> PostWithFeed:
    post = _post(row[:8])
    return PostWithFeed(
        post.id,
        post.created_at,
        post.updated_at,
        post.title,
        post.url,
        post.description,
        post.published_at,
        post.feed_id,
        row[8],
    )


def create_schema(connection: sqlite3.Connection) -> None:
    """Create the tables if they do not exist and enable foreign keys."""
    with _translated():
        connection.execute("PRAGMA foreign_keys = ON")
        connection.executescript(SCHEMA)


class Queries:
    """The application's queries over one SQLite connection.

    The connection is switched to autocommit mode; use :meth:`transaction`
    to group several statements.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        connection.isolation_level = None
        self._conn = connection

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[Queries]:
        """Run the enclosed queries in one transaction, rolled back on error."""
        with _translated():
            self._conn.execute("BEGIN")
        try:
            yield self
        except BaseException:
            self._conn.rollback()
            raise
        with _translated():
            self._conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with _translated():
            return self._conn.execute(sql, params)

    def _one(self, sql: str, params: tuple, convert: Callable[[tuple], T]) -> T:
        row = self._execute(sql, params).fetchone()
        if row is None:
            raise NoRowsError("no rows in result set")
        return convert(row)

    def _many(self, sql: str, params: tuple, convert: Callable[[tuple], T]) -> list[T]:
        with _translated():
            rows = self._conn.execute(sql, params).fetchall()
        return [convert(row) for row in rows]

    # users

    def create_user(self, user_id: UUID, created_at: datetime, updated_at: datetime, name: str) -> User:
        self._execute(
            "INSERT INTO users (id, created_at, updated_at, name) VALUES (?, ?, ?, ?)",
            (str(user_id), _to_db_time(created_at), _to_db_time(updated_at), name),
        )
        return self._one(
            "SELECT id, created_at, updated_at, name FROM users WHERE id = ?",
            (str(user_id),),
            _user,
        )

    def get_user(self, name: str) -> User:
        return self._one(
            "SELECT id, created_at, updated_at, name FROM users WHERE name = ?",
            (name,),
            _user,
        )

    def get_users(self) -> list[str]:
        return self._many("SELECT name FROM users ORDER BY rowid", (), lambda row: row[0])

    def reset(self) -> None:
        """Delete every user, and with them their feeds, follows and posts."""
        self._execute("DELETE FROM users")

    # feeds

    def create_feed(
        self,
        feed_id: UUID,
        created_at: datetime,
        updated_at: datetime,
        name: str,
        url: str,
        user_id: UUID,
    ) -> Feed:
        self._execute(
            "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (str(feed_id), _to_db_time(created_at), _to_db_time(updated_at), name, url, str(user_id)),
        )
        return self._feed_by_id(feed_id)

    def _feed_by_id(self, feed_id: UUID) -> Feed:
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE id = ?", (str(feed_id),), _feed)

    def get_feed(self, url: str) -> Feed:
        return self._one(f"SELECT {_FEED_COLUMNS} FROM feeds WHERE url = ?", (url,), _feed)

    def get_feeds(self) -> list[FeedSummary]:
        return self._many(
            "SELECT feeds.name, feeds.url, users.name FROM feeds "
            "JOIN users ON feeds.user_id = users.id ORDER BY feeds.rowid",
            (),
            lambda row: FeedSummary(*row),
        )

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return self._one(
            f"SELECT {_FEED_COLUMNS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at, rowid LIMIT 1",
            (),
            _feed,
        )

    def mark_feed_fetched(self, feed_id: UUID) -> Feed:
        now = _to_db_time(_now())
        cursor = self._execute(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(feed_id)),
        )
        if cursor.rowcount == 0:
            raise NoRowsError("no rows in result set")
        return self._feed_by_id(feed_id)

    # follows

    def create_feed_follow(
        self,
        follow_id: UUID,
        created_at: datetime,
        updated_at: datetime,
        user_id: UUID,
        feed_id: UUID,
    ) -> FeedFollowRow:
        self._execute(
            "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
            "VALUES (?, ?, ?, ?, ?)",
            (str(follow_id), _to_db_time(created_at), _to_db_time(updated_at), str(user_id), str(feed_id)),
        )
        return self._one(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, u.name, f.name "
            "FROM feed_follows ff JOIN users u ON u.id = ff.user_id "
            "JOIN feeds f ON f.id = ff.feed_id WHERE ff.id = ?",
            (str(follow_id),),
            _follow_row,
        )

    def get_feed_follows_for_user(self, user_id: UUID) -> list[FeedFollowRow]:
        return self._many(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, u.name, f.name "
            "FROM feed_follows ff JOIN users u ON u.id = ff.user_id "
            "JOIN feeds f ON f.id = ff.feed_id WHERE ff.user_id = ? ORDER BY ff.rowid",
            (str(user_id),),
            _follow_row,
        )

    def delete_feed_follow_by_user_and_feed_url(self, user_id: UUID, url: str) -> None:
        self._execute(
            "DELETE FROM feed_follows WHERE user_id = ? "
            "AND feed_id IN (SELECT id FROM feeds WHERE url = ?)",
            (str(user_id), url),
        )

    # posts

    def create_post(
        self,
        post_id: UUID,
        created_at: datetime,
        updated_at: datetime,
        title: str,
        url: str,
        description: str | None,
        published_at: datetime | None,
        feed_id: UUID,
    ) -> Post:
        params: tuple[Any, ...] = (
            str(post_id),
            _to_db_time(created_at),
            _to_db_time(updated_at),
            title,
            url,
            description,
            _to_db_time(published_at),
            str(feed_id),
        )
        self._execute(f"INSERT INTO posts ({_POST_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)", params)
        return self._one(f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?", (str(post_id),), _post)

    def get_posts_for_user(self, user_id: UUID, limit: int) -> list[PostWithFeed]:
        """Return posts of the feeds the user follows, newest first.

        Posts without a publication date sort before all others.
        """
        if limit < 0:
            raise DatabaseError("LIMIT must not be negative")
        columns = ", ".join(f"p.{name.strip()}" for name in _POST_COLUMNS.split(","))
        return self._many(
            f"SELECT {columns}, f.name FROM posts p "
            "JOIN feed_follows ff ON ff.feed_id = p.feed_id "
            "JOIN feeds f ON f.id = p.feed_id "
            "WHERE ff.user_id = ? "
            "ORDER BY p.published_at IS NULL DESC, p.published_at DESC LIMIT ?",
            (str(user_id), limit),
            _post_with_feed,
        )


def connect(url: str) -> Queries:
    """Open the database named by ``url`` and make sure its tables exist.

    Accepts a file path, ``:memory:``, a ``file:`` URI, or ``sqlite://``
    followed by ``/`` and a path (``sqlite://`` alone is an in-memory database).
    """
    uri = False
    if url.startswith("file:"):
        target, uri = url, True
    elif url.startswith("sqlite://"):
        target = url[len("sqlite://"):]
        if target.startswith("/"):
            target = target[1:]
        target = target or ":memory:"
    elif "://" in url:
        raise DatabaseError(f"unsupported database url: {url}")
    else:
        target = url
    with _translated():
        connection = sqlite3.connect(target, uri=uri, isolation_level=None)
    create_schema(connection)
    return Queries(connection)