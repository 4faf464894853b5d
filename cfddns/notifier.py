"""Push notifications."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Iterator, Optional

from cfddns.pp import ISSUE_REPORTING_URL, Emoji, PrettyPrinter


@dataclass(frozen=True)
class NotifierMessage:
    """Pieces of text to be sent as one notification."""

    lines: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines or ()))

    def format(self) -> str:
        """Join the pieces with spaces."""
        return " ".join(self.lines)

    def is_empty(self) -> bool:
        """Whether the message has no pieces."""
        return not self.lines


def merge_notifier_messages(*args: NotifierMessage) -> NotifierMessage:
    """Concatenate messages in order."""
    return NotifierMessage(tuple(line for msg in args for line in msg.lines))


class Notifier(abc.ABC):
    """A push notification service."""

    @abc.abstractmethod
    def describe(self) -> Iterator[tuple[str, str]]:
        """Yield (service name, parameters) pairs."""

    @abc.abstractmethod
    def send(self, ppfmt: PrettyPrinter, msg: NotifierMessage) -> bool:
        """Send out a message; return whether it succeeded."""


class ComposedNotifier(Notifier):
    """Several notifiers acting as one."""

    def __init__(self, *args: Optional[Notifier]) -> None:
        notifiers: list[Notifier] = []
        for n in args:
            if n is None:
                continue
            if isinstance(n, ComposedNotifier):
                notifiers.extend(n.notifiers)
            else:
                notifiers.append(n)
        self.notifiers: tuple[Notifier, ...] = tuple(notifiers)

    def describe(self) -> Iterator[tuple[str, str]]:
        for n in self.notifiers:
            yield from n.describe()

    def send(self, ppfmt: PrettyPrinter, msg: NotifierMessage) -> bool:
        # all() short-circuits, so later notifiers are skipped after a failure.
        return all(n.send(ppfmt, msg) for n in self.notifiers)


# Schemes whose display name is simply the capitalised scheme.
_PLAIN_SERVICES = frozenset(
    "bark discord gotify join mattermost matrix ntfy pushbullet "
    "pushover rocketchat slack teams telegram generic".split()
)

# Schemes whose display name differs from the capitalised scheme.
_SPECIAL_SERVICES = {
    "smtp": "Email",
    "googlechat": "Google Chat",
    "ifttt": "IFTTT",
    "opsgenie": "OpsGenie",
    "zulip": "Zulip Chat",
}


def describe_shoutrrr_service(ppfmt: PrettyPrinter, proto: str) -> str:
    """Give a human-readable name for a shoutrrr service scheme."""
    if proto in _SPECIAL_SERVICES:
        return _SPECIAL_SERVICES[proto]
    if proto in _PLAIN_SERVICES:
        return proto.title()
    ppfmt.notice(
        Emoji.IMPOSSIBLE,
        'Unknown shoutrrr service name "%s"; please report it at %s',
        proto,
        ISSUE_REPORTING_URL,
    )
    return proto.title()