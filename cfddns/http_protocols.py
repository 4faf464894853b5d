"""Detection protocols that read an address from an HTTP response."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping, Union

from cfddns.http_client import fetch_ip
from cfddns.pp import Emoji, PrettyPrinter
from cfddns.protocol_base import DetectionError, IPAddress, IPFamily, parse_ip


def _unhandled(ppfmt: PrettyPrinter, ip_family: IPFamily) -> DetectionError:
    ppfmt.notice(Emoji.IMPOSSIBLE, "Unhandled IP network: %s", ip_family.describe())
    return DetectionError("unhandled IP network")


@dataclass(frozen=True)
class HTTP:
    """Uses the whole HTTP response body as the address."""

    name: str
    urls: Mapping[IPFamily, str] = field(default_factory=dict)

    def get_ip(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> IPAddress:
        """Detect the address of the given family."""
        url = (self.urls or {}).get(ip_family)
        if url is None:
            raise _unhandled(ppfmt, ip_family)

        def extract(pp: PrettyPrinter, body: bytes) -> IPAddress:
            text = body.decode("utf-8", errors="replace").strip()
            try:
                return parse_ip(text)
            except ValueError as err:
                pp.notice(
                    Emoji.ERROR,
                    'Failed to parse the IP address in the response of "%s" ("%s")',
                    url,
                    text,
                )
                raise DetectionError("unparsable IP address") from err

        return ip_family.normalize_detected_ip(ppfmt, fetch_ip(ppfmt, ip_family, url, extract))


@dataclass(frozen=True)
class RegexpParam:
    """Where to fetch and how to find the address (first capture group)."""

    url: str
    regexp: Union[re.Pattern, str]


@dataclass(frozen=True)
class Regexp:
    """Finds the address in an HTTP response with a regular expression."""

    name: str
    params: Mapping[IPFamily, RegexpParam] = field(default_factory=dict)

    def get_ip(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> IPAddress:
        """Detect the address of the given family."""
        param = (self.params or {}).get(ip_family)
        if param is None:
            raise _unhandled(ppfmt, ip_family)
        pattern = re.compile(param.regexp) if isinstance(param.regexp, str) else param.regexp
        url = param.url

        def extract(pp: PrettyPrinter, body: bytes) -> IPAddress:
            subject = body if isinstance(pattern.pattern, bytes) else body.decode("utf-8", "replace")
            match = pattern.search(subject)
            if match is None or pattern.groups < 1:
                pp.notice(
                    Emoji.ERROR,
                    'Failed to find the IP address in the response of "%s" ("%s")',
                    url,
                    body.decode("utf-8", errors="replace"),
                )
                raise DetectionError("no IP address in the response")
            found = match.group(1) or ""
            text = found.decode("utf-8", "replace") if isinstance(found, bytes) else found
            try:
                return parse_ip(text)
            except ValueError as err:
                pp.notice(
                    Emoji.ERROR,
                    'Failed to parse the IP address in the response of "%s" ("%s")',
                    url,
                    text,
                )
                raise DetectionError("unparsable IP address") from err

        return ip_family.normalize_detected_ip(ppfmt, fetch_ip(ppfmt, ip_family, url, extract))