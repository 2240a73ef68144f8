"""Command dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from .config import Config
from .database import Queries


@dataclass(frozen=True)
class Command:
    name: str
    args: tuple[str, ...] = ()


@dataclass
class State:
    queries: Queries
    config: Config


class CommandError(Exception):
    """A command was misused or failed."""


class CommandNotFoundError(CommandError):
    """No command is registered under the given name."""


Handler = Callable[[State, Command], None]


@dataclass
class Commands:
    handlers: dict[str, Handler] = field(default_factory=dict)

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def run(self, state: State, command: Command) -> None:
        try:
            handler = self.handlers[command.name]
        except KeyError:
            raise CommandNotFoundError("command not found") from None
        handler(state, command)