"""Command-line entry point."""

from __future__ import annotations

import json
import sys
from typing import Callable, Sequence

from . import config
from .aggregate import handler_agg
from .commands import Command, CommandError, Commands, State
from .database import DatabaseError, connect
from .handlers import (
    handler_add_feed,
    handler_browse,
    handler_feeds,
    handler_follow,
    handler_following,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow,
    handler_users,
)
from .models import User


def middleware_logged_in(
    handler: Callable[[State, Command, User], None],
) -> Callable[[State, Command], None]:
    """Wrap a handler so it receives the currently logged-in user."""

    def wrapped(state: State, cmd: Command) -> None:
        user = state.queries.get_user(state.config.current_user_name)
        handler(state, cmd, user)

    return wrapped


def build_commands() -> Commands:
    cmds = Commands()
    cmds.register("register", handler_register)
    cmds.register("login", handler_login)
    cmds.register("reset", handler_reset)
    cmds.register("users", handler_users)
    cmds.register("agg", handler_agg)
    cmds.register("addfeed", middleware_logged_in(handler_add_feed))
    cmds.register("feeds", handler_feeds)
    cmds.register("follow", middleware_logged_in(handler_follow))
    cmds.register("following", middleware_logged_in(handler_following))
    cmds.register("unfollow", middleware_logged_in(handler_unfollow))
    cmds.register("browse", middleware_logged_in(handler_browse))
    return cmds


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        cfg = config.read()
    except (OSError, ValueError, json.JSONDecodeError) as exc:
        print(f"error reading config: {exc}", file=sys.stderr)
        return 1
    try:
        queries = connect(cfg.db_url)
    except DatabaseError as exc:
        print(f"error connecting to db: {exc}", file=sys.stderr)
        return 1
    with queries:
        if not args:
            print("Usage: cli <command> [args...]", file=sys.stderr)
            return 1
        try:
            build_commands().run(State(queries, cfg), Command(args[0], tuple(args[1:])))
        except (CommandError, DatabaseError, OSError) as exc:
            print(exc, file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())