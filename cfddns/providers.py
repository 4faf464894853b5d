"""Ready-made IP detection providers and their construction from configuration."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

import dns.rdataclass

from cfddns.doh import DNSOverHTTPS, DNSOverHTTPSParam
from cfddns.http_client import close_idle_connections
from cfddns.http_protocols import HTTP, Regexp, RegexpParam
from cfddns.local import LocalAuto, LocalWithInterface
from cfddns.monitors import _parse_url, _url_host
from cfddns.pp import Emoji, PrettyPrinter, new_default
from cfddns.protocol_base import (
    Const,
    DetectionError,
    IPAddress,
    IPFamily,
    parse_ip,
)

FIELD_IP = re.compile(r"^ip=(.*)$", re.MULTILINE)


class Provider(Protocol):
    """A protocol to detect public IP addresses."""

    name: str

    def get_ip(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> IPAddress:
        ...


def provider_name(provider: Optional[Provider]) -> str:
    """The provider's name, or "none" for no provider."""
    if provider is None:
        return "none"
    return provider.name


def close_provider_connections() -> None:
    """Close kept-alive connections left over from detection."""
    close_idle_connections()


@dataclass(frozen=True)
class CompositeProvider:
    """A dynamic provider together with fixed extra addresses."""

    name: str
    primary: Provider
    static_ips: tuple[IPAddress, ...] = field(default_factory=tuple)

    def get_ip(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> IPAddress:
        """The dynamic address only."""
        return self.primary.get_ip(ppfmt, ip_family)

    def get_all_ips(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> list[IPAddress]:
        """The dynamic address followed by the static ones of the family, without duplicates."""
        all_ips = [self.primary.get_ip(ppfmt, ip_family)]
        for static_ip in self.static_ips:
            try:
                normalized = ip_family.normalize_detected_ip(ppfmt, static_ip)
            except DetectionError:
                continue
            if normalized not in all_ips:
                all_ips.append(normalized)
        return all_ips


def new_composite(
    ppfmt: PrettyPrinter, primary: Provider, static_ips: Sequence[str]
) -> CompositeProvider:
    """Combine a provider with static addresses; raise ValueError for a bad address."""
    parsed: list[IPAddress] = []
    for raw in static_ips:
        text = raw.strip()
        if not text:
            continue
        try:
            parsed.append(parse_ip(text))
        except ValueError as err:
            ppfmt.notice(Emoji.USER_ERROR, 'Failed to parse static IP address "%s"', text)
            raise ValueError(f"invalid static IP address {text!r}") from err

    name = f"{primary.name}+static[{','.join(str(ip) for ip in parsed)}]"
    return CompositeProvider(name=name, primary=primary, static_ips=tuple(parsed))


def new_cloudflare_doh() -> DNSOverHTTPS:
    """Query whoami.cloudflare. through Cloudflare's DNS over HTTPS."""
    param = DNSOverHTTPSParam(
        "https://cloudflare-dns.com/dns-query", "whoami.cloudflare.", dns.rdataclass.CH
    )
    return DNSOverHTTPS(name="cloudflare.doh", params={IPFamily.IP4: param, IPFamily.IP6: param})


def new_cloudflare_trace() -> Regexp:
    """Parse Cloudflare's trace page."""
    return new_cloudflare_trace_custom("https://api.cloudflare.com/cdn-cgi/trace")


def new_cloudflare_trace_custom(url: str) -> Regexp:
    """Parse a Cloudflare trace page at the given URL."""
    param = RegexpParam(url, FIELD_IP)
    return Regexp(name="cloudflare.trace", params={IPFamily.IP4: param, IPFamily.IP6: param})


def new_debug_const(ppfmt: PrettyPrinter, raw: str) -> Const:
    """A provider always giving the given address; raise ValueError if it does not parse."""
    try:
        ip = parse_ip(raw)
    except ValueError as err:
        ppfmt.notice(
            Emoji.USER_ERROR, 'Failed to parse the IP address "%s" following "const:"', raw
        )
        raise ValueError(f"invalid IP address {raw!r}") from err
    return Const(name=f"debug.const:{ip}", ip=ip)


def must_new_debug_const(raw: str) -> Const:
    """Like new_debug_const, raising ValueError with the printed explanation."""
    buf = io.StringIO()
    try:
        return new_debug_const(new_default(buf), raw)
    except ValueError as err:
        raise ValueError(buf.getvalue()) from err


def new_custom_url(ppfmt: PrettyPrinter, raw_url: str) -> HTTP:
    """A provider reading the address from an HTTP(S) URL; raise ValueError for a bad URL."""
    try:
        parts = _parse_url(raw_url)
    except ValueError as err:
        ppfmt.notice(Emoji.USER_ERROR, "Failed to parse the provider url:(redacted)")
        raise ValueError("invalid provider URL") from err

    if not (parts.scheme and _url_host(parts)):
        ppfmt.notice(Emoji.USER_ERROR, "The provider url:(redacted) does not contain a valid URL")
        raise ValueError("invalid provider URL")

    if parts.scheme == "http":
        ppfmt.notice(
            Emoji.USER_WARNING,
            "The provider url:(redacted) uses HTTP; consider using HTTPS instead",
        )
    elif parts.scheme != "https":
        ppfmt.notice(Emoji.USER_ERROR, "The provider url:(redacted) only supports HTTP and HTTPS")
        raise ValueError("unsupported provider URL scheme")

    return HTTP(name="url:(redacted)", urls={IPFamily.IP4: raw_url, IPFamily.IP6: raw_url})


def must_new_custom_url(raw_url: str) -> HTTP:
    """Like new_custom_url, raising ValueError with the printed explanation."""
    buf = io.StringIO()
    try:
        return new_custom_url(new_default(buf), raw_url)
    except ValueError as err:
        raise ValueError(buf.getvalue()) from err


def new_ipify() -> HTTP:
    """Use the ipify service."""
    return HTTP(
        name="ipify",
        urls={IPFamily.IP4: "https://api4.ipify.org", IPFamily.IP6: "https://api6.ipify.org"},
    )


def new_local() -> LocalAuto:
    """Use the local source address toward Cloudflare; no packet is sent."""
    return LocalAuto(name="local", remote_udp_addr="api.cloudflare.com:443")


def new_local_with_interface(iface: str) -> LocalWithInterface:
    """Use an address assigned to the named interface."""
    return LocalWithInterface(name=f"local.iface:{iface}", interface_name=iface)