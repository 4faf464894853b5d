"""Basic monitoring through an Uptime Kuma push endpoint."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import SplitResult, unquote_plus, urlencode, urlunsplit

import requests
import urllib3.exceptions

from cfddns.monitor_message import MonitorMessage
from cfddns.monitors import (
    MAX_READ_LENGTH,
    BasicMonitor,
    _parse_url,
    _retrying_session,
    _url_host,
)
from cfddns.pp import Emoji, PrettyPrinter

UPTIME_KUMA_DEFAULT_TIMEOUT = 10.0

_INVALID = "The Uptime Kuma URL (redacted) does not look like a valid URL"
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_EXPECTED_QUERY = {"status": ["up"], "msg": ["OK"], "ping": [""]}


def _unescape_query(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise ValueError("invalid URL escape")
    return unquote_plus(text)


def _parse_query(query: str) -> dict[str, list[str]]:
    values: dict[str, list[str]] = {}
    for pair in query.split("&"):
        if not pair:
            continue
        if ";" in pair:
            raise ValueError("invalid semicolon separator in query")
        key, _, value = pair.partition("=")
        values.setdefault(_unescape_query(key), []).append(_unescape_query(value))
    return values


@dataclass(frozen=True)
class UptimeKuma(BasicMonitor):
    """An Uptime Kuma push monitor.

    Success and failure become status=up and status=down; successful pings
    always carry the message "OK".
    """

    base_url: SplitResult
    timeout: float = UPTIME_KUMA_DEFAULT_TIMEOUT
    backoff_factor: float = 1.0

    def describe(self) -> Iterator[tuple[str, str]]:
        yield "Uptime Kuma", "(URL redacted)"

    def _ping(self, ppfmt: PrettyPrinter, status: str, msg: str) -> bool:
        query = urlencode(sorted({"status": status, "msg": msg, "ping": ""}.items()))
        url = urlunsplit(self.base_url._replace(query=query))
        with _retrying_session(self.backoff_factor) as session:
            try:
                request = session.prepare_request(requests.Request("GET", url))
            except (requests.RequestException, ValueError) as err:
                ppfmt.notice(
                    Emoji.IMPOSSIBLE, "Failed to prepare HTTP(S) request to Uptime Kuma: %s", err
                )
                return False

            try:
                response = session.send(request, timeout=self.timeout, stream=True)
            except requests.RequestException as err:
                ppfmt.notice(Emoji.ERROR, "Failed to send HTTP(S) request to Uptime Kuma: %s", err)
                return False

            try:
                with response:
                    body = response.raw.read(MAX_READ_LENGTH, decode_content=True)
                value, _ = json.JSONDecoder().raw_decode(body.decode("utf-8").lstrip())
                if value is None:
                    value = {}
                if not isinstance(value, dict):
                    raise ValueError("the response is not a JSON object")
                ok = value.get("ok", False)
                message = value.get("msg", "")
                if message is None:
                    message = ""
                if not isinstance(ok, bool) or not isinstance(message, str):
                    raise ValueError("unexpected field types in the response")
            except (ValueError, urllib3.exceptions.HTTPError, OSError) as err:
                ppfmt.notice(Emoji.ERROR, "Failed to parse the response from Uptime Kuma: %s", err)
                return False

        if not ok:
            ppfmt.notice(Emoji.ERROR, "Failed to ping Uptime Kuma: %s", message)
            return False

        ppfmt.info(Emoji.PING, "Pinged Uptime Kuma")
        return True

    def ping(self, ppfmt: PrettyPrinter, msg: MonitorMessage) -> bool:
        if msg.ok:
            # Uptime Kuma seems to keep only the first success message, so a
            # fixed one avoids showing outdated text.
            return self._ping(ppfmt, "up", "OK")
        # An empty message would leave the previous (possibly "OK") text.
        return self._ping(ppfmt, "down", msg.format() or "Failing")


def new_uptime_kuma(ppfmt: PrettyPrinter, raw_url: str) -> UptimeKuma:
    """Create an Uptime Kuma monitor; raise ValueError for an unusable URL."""
    try:
        parts = _parse_url(raw_url)
    except ValueError as err:
        ppfmt.notice(Emoji.USER_ERROR, "Failed to parse the Uptime Kuma URL (redacted)")
        raise ValueError("invalid Uptime Kuma URL") from err

    if not (parts.scheme and _url_host(parts)):
        ppfmt.notice(Emoji.USER_ERROR, _INVALID)
        raise ValueError("invalid Uptime Kuma URL")

    if parts.scheme == "http":
        ppfmt.notice(
            Emoji.USER_WARNING,
            "The Uptime Kuma URL (redacted) uses HTTP; please consider using HTTPS",
        )
    elif parts.scheme != "https":
        ppfmt.notice(Emoji.USER_ERROR, _INVALID)
        raise ValueError("invalid Uptime Kuma URL")

    # Uptime Kuma hands out URLs ending in "?status=up&msg=OK&ping=".
    if parts.query:
        try:
            query = _parse_query(parts.query)
        except ValueError as err:
            ppfmt.notice(Emoji.USER_ERROR, _INVALID)
            raise ValueError("invalid Uptime Kuma URL") from err

        for key, values in query.items():
            if _EXPECTED_QUERY.get(key) != values:
                ppfmt.notice(
                    Emoji.USER_ERROR,
                    "The Uptime Kuma URL (redacted) contains an unexpected query %s=... "
                    "and it will be ignored",
                    key,
                )
        parts = parts._replace(query="")

    return UptimeKuma(base_url=parts, timeout=UPTIME_KUMA_DEFAULT_TIMEOUT)