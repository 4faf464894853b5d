"""Monitoring through a Healthchecks ping endpoint."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import SplitResult, urlunsplit

import requests
import urllib3.exceptions

from cfddns.monitor_message import MonitorMessage
from cfddns.monitors import (
    MAX_READ_LENGTH,
    Monitor,
    _parse_url,
    _retrying_session,
    _url_host,
)
from cfddns.pp import Emoji, PrettyPrinter

HEALTHCHECKS_DEFAULT_TIMEOUT = 10.0

_EXAMPLE = 'A valid example is "https://hc-ping.com/01234567-0123-0123-0123-0123456789abc"'
_INVALID = "The Healthchecks URL (redacted) does not look like a valid URL"


def _join_path(base: str, endpoint: str) -> str:
    joined = "/".join(part for part in (base, endpoint) if part)
    path = posixpath.normpath(joined) if joined else "/"
    if path == ".":
        path = "/"
    return "/" + path.lstrip("/")


@dataclass(frozen=True)
class Healthchecks(Monitor):
    """A Healthchecks check, addressed by its success endpoint."""

    base_url: SplitResult
    timeout: float = HEALTHCHECKS_DEFAULT_TIMEOUT
    backoff_factor: float = 1.0

    def describe(self) -> Iterator[tuple[str, str]]:
        yield "Healthchecks", "(URL redacted)"

    def _ping(self, ppfmt: PrettyPrinter, endpoint: str, message: str) -> bool:
        # The UUID API answers 200 even for unknown checks, so both the status
        # code and the body "OK" are required.
        description = f'"{endpoint}"' if endpoint else "default (root)"
        url = urlunsplit(
            self.base_url._replace(path=_join_path(self.base_url.path, endpoint))
        )
        with _retrying_session(self.backoff_factor) as session:
            try:
                request = session.prepare_request(
                    requests.Request("POST", url, data=message.encode("utf-8"))
                )
            except (requests.RequestException, ValueError) as err:
                ppfmt.notice(
                    Emoji.IMPOSSIBLE,
                    "Failed to prepare HTTP(S) request to the %s endpoint of Healthchecks: %s",
                    description,
                    err,
                )
                return False

            try:
                response = session.send(request, timeout=self.timeout, stream=True)
            except requests.RequestException as err:
                ppfmt.notice(
                    Emoji.ERROR,
                    "Failed to send HTTP(S) request to the %s endpoint of Healthchecks: %s",
                    description,
                    err,
                )
                return False

            with response:
                try:
                    body = response.raw.read(MAX_READ_LENGTH, decode_content=True)
                except (urllib3.exceptions.HTTPError, OSError) as err:
                    ppfmt.notice(
                        Emoji.ERROR,
                        "Failed to read HTTP(S) response from the %s endpoint of Healthchecks: %s",
                        description,
                        err,
                    )
                    return False

            text = body.decode("utf-8", errors="replace").strip()
            if response.status_code != 200 or text != "OK":
                ppfmt.notice(
                    Emoji.ERROR,
                    "Failed to ping the %s endpoint of Healthchecks; got response code: %d %s",
                    description,
                    response.status_code,
                    text,
                )
                return False

        ppfmt.info(Emoji.PING, "Pinged the %s endpoint of Healthchecks", description)
        return True

    def ping(self, ppfmt: PrettyPrinter, msg: MonitorMessage) -> bool:
        return self._ping(ppfmt, "" if msg.ok else "/fail", msg.format())

    def start(self, ppfmt: PrettyPrinter, message: str) -> bool:
        return self._ping(ppfmt, "/start", message)

    def exit(self, ppfmt: PrettyPrinter, message: str) -> bool:
        return self._ping(ppfmt, "/0", message)

    def log(self, ppfmt: PrettyPrinter, msg: MonitorMessage) -> bool:
        if not msg.ok:
            return self._ping(ppfmt, "/fail", msg.format())
        if not msg.is_empty():
            return self._ping(ppfmt, "/log", msg.format())
        return True


def new_healthchecks(ppfmt: PrettyPrinter, raw_url: str) -> Healthchecks:
    """Create a Healthchecks monitor; raise ValueError for an unusable URL."""
    try:
        parts = _parse_url(raw_url)
    except ValueError as err:
        ppfmt.notice(Emoji.USER_ERROR, "Failed to parse the Healthchecks URL (redacted)")
        raise ValueError("invalid Healthchecks URL") from err

    if not (parts.scheme and _url_host(parts) and not parts.query):
        ppfmt.notice(Emoji.USER_ERROR, _INVALID)
        ppfmt.notice(Emoji.USER_ERROR, _EXAMPLE)
        raise ValueError("invalid Healthchecks URL")

    if parts.scheme == "http":
        ppfmt.notice(
            Emoji.USER_WARNING,
            "The Healthchecks URL (redacted) uses HTTP; please consider using HTTPS",
        )
    elif parts.scheme != "https":
        ppfmt.notice(Emoji.USER_ERROR, _INVALID)
        ppfmt.notice(Emoji.USER_ERROR, _EXAMPLE)
        raise ValueError("invalid Healthchecks URL")

    return Healthchecks(base_url=parts, timeout=HEALTHCHECKS_DEFAULT_TIMEOUT)