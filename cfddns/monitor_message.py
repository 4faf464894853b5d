"""Messages with a success or failure status, sent to monitors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True)
class MonitorMessage:
    """Lines of text together with an overall success flag."""

    ok: bool = True
    lines: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines or ()))

    def format(self) -> str:
        """Join the lines into one string."""
        return "\n".join(self.lines)

    def is_empty(self) -> bool:
        """Whether the message has no lines."""
        return not self.lines


def new_message() -> MonitorMessage:
    """Create an empty successful message."""
    return MonitorMessage(ok=True, lines=())


def new_messagef(ok: bool, fmt: str, *args: object) -> MonitorMessage:
    """Create a message holding one formatted line."""
    return MonitorMessage(ok=ok, lines=(fmt % args if args else fmt,))


def merge_messages(*args: MonitorMessage) -> MonitorMessage:
    """Merge messages, keeping only the lines of the highest severity."""
    ok = all(msg.ok for msg in args)
    lines: Iterable[str] = (line for msg in args if msg.ok == ok for line in msg.lines)
    return MonitorMessage(ok=ok, lines=tuple(lines))