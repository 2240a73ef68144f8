"""Records stored in and returned by the database."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class User:
    id: UUID
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass(frozen=True)
class Feed:
    id: UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: UUID
    last_fetched_at: datetime | None = None


@dataclass(frozen=True)
class FeedFollow:
    id: UUID
    created_at: datetime
    updated_at: datetime
    user_id: UUID
    feed_id: UUID


@dataclass(frozen=True)
class Post:
    id: UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str | None
    published_at: datetime | None
    feed_id: UUID


@dataclass(frozen=True)
class FeedFollowRow:
    """A follow together with the names of its user and feed."""

    id: UUID
    created_at: datetime
    updated_at: datetime
    user_id: UUID
    feed_id: UUID
    user_name: str
    feed_name: str

    @property
    def follow(self) -> FeedFollow:
        return FeedFollow(self.id, self.created_at, self.updated_at, self.user_id, self.feed_id)


@dataclass(frozen=True)
class FeedSummary:
    """A feed's name and URL with the name of the user who added it."""

    feed_name: str
    feed_url: str
    user_name: str


@dataclass(frozen=True)
class PostWithFeed:
    """A post together with the name of the feed it came from."""

    id: UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str | None
    published_at: datetime | None
    feed_id: UUID
    feed_name: str

    @property
    def post(self) -> Post:
        return Post(
            self.id,
            self.created_at,
            self.updated_at,
            self.title,
            self.url,
            self.description,
            self.published_at,
            self.feed_id,
        )