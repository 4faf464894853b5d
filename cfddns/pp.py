"""Pretty-printing of user-facing messages."""

from __future__ import annotations

import copy
import enum
from typing import Callable, Iterable, Sequence, TextIO, TypeVar

T = TypeVar("T")

ISSUE_REPORTING_URL = "https://github.com/favonia/cloudflare-ddns/issues/new"
MANUAL_URL = "https://github.com/favonia/cloudflare-ddns/blob/main/README.markdown"

# Should be wider than an emoji to look good.
INDENT_PREFIX = "   "


class Verbosity(enum.IntEnum):
    """Message levels; a higher level means more verbose."""

    NOTICE = 0
    INFO = 1
    QUIET = 0
    VERBOSE = 1
    DEFAULT = 1


class Emoji(str, enum.Enum):
    """Emojis prefixed to printed messages."""

    STAR = "🌟"
    BULLET = "🔸"

    ENV_VARS = "📖"
    CONFIG = "🔧"
    INTERNET = "🌐"
    MUTE = "🔇"
    DISABLED = "🚫"
    EXPERIMENTAL = "🧪"
    SWITCH = "🔀"

    CREATION = "🐣"
    DELETION = "💀"
    UPDATE = "📡"
    CLEAR = "🧹"

    PING = "🔔"
    NOTIFY = "📣"

    TIMEOUT = "⌛"
    SIGNAL = "🚨"
    ALREADY_DONE = "🤷"
    NOW = "🏃"
    ALARM = "⏰"
    BYE = "👋"

    GOOD = "😊"
    USER_ERROR = "😡"
    USER_WARNING = "😦"
    ERROR = "😞"
    WARNING = "😐"
    IMPOSSIBLE = "🤯"
    HINT = "💡"


class MessageID(enum.IntEnum):
    """Identifiers of messages that should be shown at most once."""

    UPDATE_DOCKER_TEMPLATE = 0
    AUTH_TOKEN_NEW_PREFIX = 1
    IP4_DETECTION_FAILS = 2
    IP6_DETECTION_FAILS = 3
    IP4_MAPPED_IP6_ADDRESS = 4
    DETECTION_TIMEOUTS = 5
    UPDATE_TIMEOUTS = 6
    RECORD_PERMISSION = 7
    WAF_LIST_PERMISSION = 8
    EXPERIMENTAL_SHOUTRRR = 9
    EXPERIMENTAL_WAF = 10
    EXPERIMENTAL_LOCAL_WITH_INTERFACE = 11
    UNDOCUMENTED_DEBUG_CONST_PROVIDER = 12
    UNDOCUMENTED_CUSTOM_CLOUDFLARE_TRACE_PROVIDER = 13


def _render(fmt: str, args: tuple) -> str:
    return fmt % args if args else fmt


class PrettyPrinter:
    """Writes indented, optionally emoji-prefixed messages to a text stream."""

    def __init__(
        self,
        stream: TextIO,
        emoji: bool = True,
        verbosity: Verbosity = Verbosity.DEFAULT,
    ) -> None:
        self.stream = stream
        self.emoji = emoji
        self.verbosity = verbosity
        self._indent = 0
        self._shown: set = set()

    def is_showing(self, verbosity: Verbosity) -> bool:
        """Whether messages of the given level are printed."""
        return self.verbosity >= verbosity

    def indent(self) -> PrettyPrinter:
        """Return a printer indenting one level deeper, sharing the once-only state."""
        child = copy.copy(self)
        child._indent += 1
        return child

    def blank_line_if_verbose(self) -> None:
        """Print an empty line at the verbose level."""
        if self.is_showing(Verbosity.VERBOSE):
            self.stream.write("\n")

    def _output(self, verbosity: Verbosity, emoji: Emoji, msg: str) -> None:
        if not self.is_showing(verbosity):
            return
        prefix = INDENT_PREFIX * self._indent
        if self.emoji:
            line = f"{prefix}{Emoji(emoji).value} {msg}"
        else:
            line = f"{prefix}{msg}"
        line = line.removesuffix("\n")
        self.stream.write(line + "\n")

    def info(self, emoji: Emoji, fmt: str, *args: object) -> None:
        """Print a message at the info level."""
        self._output(Verbosity.INFO, emoji, _render(fmt, args))

    def notice(self, emoji: Emoji, fmt: str, *args: object) -> None:
        """Print a message at the notice level."""
        self._output(Verbosity.NOTICE, emoji, _render(fmt, args))

    def suppress(self, message_id: MessageID) -> None:
        """Suppress all later once-only messages with this ID."""
        self._shown.add(message_id)

    def info_once(self, message_id: MessageID, emoji: Emoji, fmt: str, *args: object) -> None:
        """Print an info message unless one with the same ID was already shown."""
        if message_id not in self._shown:
            self.info(emoji, fmt, *args)
            self._shown.add(message_id)

    def notice_once(self, message_id: MessageID, emoji: Emoji, fmt: str, *args: object) -> None:
        """Print a notice unless one with the same ID was already shown."""
        if message_id not in self._shown:
            self.notice(emoji, fmt, *args)
            self._shown.add(message_id)


def new_default(stream: TextIO) -> PrettyPrinter:
    """Create a printer with emojis and the default verbosity."""
    return PrettyPrinter(stream, True, Verbosity.DEFAULT)


def join(items: Sequence[str]) -> str:
    """Join words with commas, or give "(none)"."""
    items = list(items or ())
    if not items:
        return "(none)"
    return ", ".join(items)


def english_join(items: Sequence[str]) -> str:
    """Join words as in English, with an Oxford comma."""
    items = list(items or ())
    if not items:
        return "(none)"
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def join_map(func: Callable[[T], str], items: Iterable[T]) -> str:
    """Apply func to each item and join the results with commas."""
    return join([func(item) for item in items])


def english_join_map(func: Callable[[T], str], items: Iterable[T]) -> str:
    """Apply func to each item and join the results as in English."""
    return english_join([func(item) for item in items])