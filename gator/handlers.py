"""Handlers for the user, feed, follow and browse commands."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone

from .commands import Command, CommandError, State
from .database import DatabaseError
from .models import Feed, User

SEPARATOR = "====================================="
DEFAULT_BROWSE_LIMIT = 2


def _now() -> datetime:
    return datetime.now(timezone.utc)


def format_user(user: User) -> str:
    return f" * ID:      {user.id}\n * Name:    {user.name}"


def format_feed(feed: Feed) -> str:
    fetched = feed.last_fetched_at if feed.last_fetched_at is not None else "never"
    return "\n".join(
        [
            f"* ID:            {feed.id}",
            f"* Created:       {feed.created_at}",
            f"* Updated:       {feed.updated_at}",
            f"* Name:          {feed.name}",
            f"* URL:           {feed.url}",
            f"* UserID:        {feed.user_id}",
            f"* LastFetchedAt: {fetched}",
        ]
    )


def handler_login(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    (name,) = cmd.args
    try:
        state.queries.get_user(name)
    except DatabaseError as exc:
        raise CommandError(f"couldn't find user: {exc}") from exc
    try:
        state.config.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User switched successfully!")


def handler_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    now = _now()
    try:
        user = state.queries.create_user(uuid.uuid4(), now, now, cmd.args[0])
    except DatabaseError as exc:
        raise CommandError(f"couldn't create user: {exc}") from exc
    try:
        state.config.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"couldn't set user: {exc}") from exc
    print("User switched successfully!")
    print(format_user(user))


def handler_reset(state: State, cmd: Command) -> None:
    try:
        state.queries.reset()
    except DatabaseError as exc:
        raise CommandError(f"couldn't reset user: {exc}") from exc
    print("User reset successfully!")


def handler_users(state: State, cmd: Command) -> None:
    try:
        names = state.queries.get_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't get users: {exc}") from exc
    current = state.config.current_user_name
    for name in names:
        print(f"{name} (current)" if name == current else name)


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError(f"usage: {cmd.name} <name> <url>")
    name, url = cmd.args
    now = _now()
    try:
        feed = state.queries.create_feed(uuid.uuid4(), now, now, name, url, user.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed: {exc}") from exc
    print("Feed created successfully:")
    print(format_feed(feed))
    print()
    print(SEPARATOR)
    now = _now()
    try:
        state.queries.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"could not auto-follow new feed: {exc}") from exc


def handler_feeds(state: State, cmd: Command) -> None:
    for feed in state.queries.get_feeds():
        print(feed.feed_name)
        print(feed.user_name)


def handler_follow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError("usage: <url>")
    feed = state.queries.get_feed(cmd.args[0])
    now = _now()
    follow = state.queries.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    print(f"Now following '{follow.feed_name}' as '{follow.user_name}'")


def handler_following(state: State, cmd: Command, user: User) -> None:
    for follow in state.queries.get_feed_follows_for_user(user.id):
        print(follow.feed_name)


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError("usage: unfollow <feed_url>")
    url = cmd.args[0]
    try:
        state.queries.delete_feed_follow_by_user_and_feed_url(user.id, url)
    except DatabaseError as exc:
        raise CommandError(f"failed to unfollow feed: {exc}") from exc
    print(f"Unfollowed feed: {url}")


def _format_day(moment: datetime | None) -> str:
    if moment is None:
        return "Mon Jan 1"
    return f"{moment:%a %b} {moment.day}"


def handler_browse(state: State, cmd: Command, user: User) -> None:
    limit = DEFAULT_BROWSE_LIMIT
    if len(cmd.args) == 1:
        if not re.fullmatch(r"[+-]?[0-9]+", cmd.args[0]):
            raise CommandError(f"invalid limit: {cmd.args[0]!r}")
        limit = int(cmd.args[0])
    try:
        posts = state.queries.get_posts_for_user(user.id, limit)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get posts for user: {exc}") from exc
    print(f"Found {len(posts)} posts for user {user.name}:")
    for post in posts:
        print(f"{_format_day(post.published_at)} from {post.feed_name}")
        print(f"--- {post.title} ---")
        print(f"    {post.description or ''}")
        print(f"Link: {post.url}")
        print(SEPARATOR)