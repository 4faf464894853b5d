"""IP families and the constant detection protocol."""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass
from typing import Optional, Union

from cfddns.pp import ISSUE_REPORTING_URL, Emoji, PrettyPrinter

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class DetectionError(Exception):
    """Raised when an IP address could not be detected."""


def parse_ip(text: str) -> IPAddress:
    """Parse an IPv4 or IPv6 address (IPv6 zones allowed); raise ValueError otherwise."""
    return ipaddress.ip_address(text)


class IPFamily(enum.Enum):
    """An IP network family."""

    IP4 = 4
    IP6 = 6

    def describe(self) -> str:
        """Human-readable name, such as "IPv4"."""
        return "IPv4" if self is IPFamily.IP4 else "IPv6"

    def record_type(self) -> str:
        """The DNS record type holding addresses of this family."""
        return "A" if self is IPFamily.IP4 else "AAAA"

    def udp_network(self) -> str:
        """The UDP network name of this family."""
        return "udp4" if self is IPFamily.IP4 else "udp6"

    def matches(self, ip: IPAddress) -> bool:
        """Whether the address belongs to this family."""
        if self is IPFamily.IP4:
            return isinstance(ip, ipaddress.IPv4Address)
        return isinstance(ip, ipaddress.IPv6Address)

    def normalize_detected_ip(self, ppfmt: PrettyPrinter, ip: Optional[IPAddress]) -> IPAddress:
        """Check a detected address; raise DetectionError if it is unusable."""
        if ip is None:
            ppfmt.notice(
                Emoji.IMPOSSIBLE,
                "Detected IP address is not valid; this should not happen and please report it at %s",
                ISSUE_REPORTING_URL,
            )
            raise DetectionError("invalid IP address")
        if self is IPFamily.IP4:
            if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
                ip = ip.ipv4_mapped
            if not isinstance(ip, ipaddress.IPv4Address):
                ppfmt.notice(Emoji.ERROR, "Detected IP address %s is not a valid IPv4 address", ip)
                raise DetectionError("not an IPv4 address")
        elif not isinstance(ip, ipaddress.IPv6Address):
            ppfmt.notice(Emoji.ERROR, "Detected IP address %s is not a valid IPv6 address", ip)
            raise DetectionError("not an IPv6 address")
        if ip.is_loopback:
            ppfmt.notice(
                Emoji.ERROR, "Detected %s address %s is a loopback address", self.describe(), ip
            )
            raise DetectionError("loopback address")
        return ip


@dataclass(frozen=True)
class Const:
    """A detection protocol that always gives the same address."""

    name: str
    ip: Optional[IPAddress]

    def get_ip(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> IPAddress:
        """Return the stored address, checked against the family."""
        return ip_family.normalize_detected_ip(ppfmt, self.ip)