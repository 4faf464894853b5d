"""Dead man's switches: monitors that alert the user when updating fails."""

from __future__ import annotations

import abc
import re
from typing import Iterator, Optional
from urllib.parse import SplitResult, urlsplit

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from cfddns.monitor_message import MonitorMessage
from cfddns.pp import PrettyPrinter

# The maximum number of bytes read from an HTTP response.
MAX_READ_LENGTH = 102400

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_RETRY_STATUSES = tuple([429] + [code for code in range(500, 600) if code != 501])


class BasicMonitor(abc.ABC):
    """A dead man's switch: the user is notified when pings stop or fail."""

    @abc.abstractmethod
    def describe(self) -> Iterator[tuple[str, str]]:
        """Yield (service name, parameters) pairs."""

    @abc.abstractmethod
    def ping(self, ppfmt: PrettyPrinter, msg: MonitorMessage) -> bool:
        """Ping with a message; a failing message notifies the user at once."""


class Monitor(BasicMonitor):
    """A monitor that also understands start, exit and log signals."""

    @abc.abstractmethod
    def start(self, ppfmt: PrettyPrinter, message: str) -> bool:
        """Signal that the updater has started."""

    @abc.abstractmethod
    def exit(self, ppfmt: PrettyPrinter, message: str) -> bool:
        """Signal that the updater exits successfully."""

    @abc.abstractmethod
    def log(self, ppfmt: PrettyPrinter, msg: MonitorMessage) -> bool:
        """Record extra information; a failing message notifies the user at once."""


class ComposedMonitor(Monitor):
    """Several monitors acting as one."""

    def __init__(self, *args: Optional[BasicMonitor]) -> None:
        monitors: list[BasicMonitor] = []
        for m in args:
            if m is None:
                continue
            if isinstance(m, ComposedMonitor):
                monitors.extend(m.monitors)
            else:
                monitors.append(m)
        self.monitors: tuple[BasicMonitor, ...] = tuple(monitors)

    def describe(self) -> Iterator[tuple[str, str]]:
        for m in self.monitors:
            yield from m.describe()

    def ping(self, ppfmt: PrettyPrinter, msg: MonitorMessage) -> bool:
        # Stops at the first failure.
        return all(m.ping(ppfmt, msg) for m in self.monitors)

    def start(self, ppfmt: PrettyPrinter, message: str) -> bool:
        return all(
            m.start(ppfmt, message) for m in self.monitors if isinstance(m, Monitor)
        )

    def exit(self, ppfmt: PrettyPrinter, message: str) -> bool:
        return all(
            m.exit(ppfmt, message) for m in self.monitors if isinstance(m, Monitor)
        )

    def log(self, ppfmt: PrettyPrinter, msg: MonitorMessage) -> bool:
        for m in self.monitors:
            if isinstance(m, Monitor):
                if not m.log(ppfmt, msg):
                    return False
            elif not msg.ok and not m.ping(ppfmt, msg):
                return False
        return True


def _parse_url(raw: str) -> SplitResult:
    """Split a URL, raising ValueError where it cannot be parsed at all."""
    if _CONTROL_CHARS.search(raw):
        raise ValueError("invalid control character in URL")
    if raw.startswith(":"):
        raise ValueError("missing protocol scheme")
    parts = urlsplit(raw)
    if _BAD_ESCAPE.search(parts.netloc + parts.path):
        raise ValueError("invalid URL escape")
    _ = parts.port  # raises ValueError for a malformed port
    return parts


def _url_host(parts: SplitResult) -> str:
    return parts.netloc.rpartition("@")[2]


def _retrying_session(backoff_factor: float) -> requests.Session:
    """A session that retries connection failures, 429 and most 5xx responses."""
    retry = Retry(
        total=4,
        connect=4,
        read=4,
        status=4,
        backoff_factor=backoff_factor,
        status_forcelist=_RETRY_STATUSES,
        allowed_methods=None,
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session