"""Detection through a TXT query sent over DNS over HTTPS."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Mapping

import dns.exception
import dns.flags
import dns.message
import dns.rcode
import dns.rdataclass
import dns.rdatatype

from cfddns.http_client import fetch_ip
from cfddns.pp import Emoji, PrettyPrinter
from cfddns.protocol_base import DetectionError, IPAddress, IPFamily, parse_ip


def new_dns_query(ppfmt: PrettyPrinter, query_id: int, name: str, rdclass: int) -> bytes:
    """Build a non-recursive TXT query in wire format."""
    try:
        if not name.endswith("."):
            raise ValueError(f"non-canonical name {name!r}")
        query = dns.message.make_query(name, dns.rdatatype.TXT, rdclass)
        query.id = query_id
        query.flags = 0
        return query.to_wire()
    except (dns.exception.DNSException, ValueError) as err:
        ppfmt.notice(Emoji.ERROR, "Failed to prepare the DNS query: %s", err)
        raise DetectionError("DNS query could not be prepared") from err


def _invalid(ppfmt: PrettyPrinter, fmt: str, *args: object) -> DetectionError:
    ppfmt.notice(Emoji.IMPOSSIBLE, fmt, *args)
    return DetectionError("invalid DNS response")


def parse_dns_response(
    ppfmt: PrettyPrinter, wire: bytes, query_id: int, name: str, rdclass: int
) -> IPAddress:
    """Extract the single address string from the matching TXT answers."""
    try:
        msg = dns.message.from_wire(wire, one_rr_per_rrset=True)
    except (dns.exception.DNSException, ValueError) as err:
        raise _invalid(ppfmt, "Invalid DNS response: %s", err) from err

    if msg.id != query_id:
        raise _invalid(ppfmt, "Invalid DNS response: mismatched transaction ID")
    if not msg.flags & dns.flags.QR:
        raise _invalid(ppfmt, "Invalid DNS response: QR was not set")
    if msg.flags & dns.flags.TC:
        raise _invalid(ppfmt, "Invalid DNS response: TC was set")
    if msg.rcode() != dns.rcode.NOERROR:
        raise _invalid(
            ppfmt, "Invalid DNS response: response code is %s", dns.rcode.to_text(msg.rcode())
        )

    ip_string = ""
    for rrset in msg.answer:
        if (
            rrset.name.to_text() != name
            or rrset.rdtype != dns.rdatatype.TXT
            or rrset.rdclass != rdclass
        ):
            continue
        for rdata in rrset:
            for raw in rdata.strings:
                text = raw.decode("utf-8", errors="replace").strip()
                if not text:
                    continue
                if ip_string:
                    raise _invalid(
                        ppfmt, "Invalid DNS response: more than one string in TXT records"
                    )
                ip_string = text

    if not ip_string:
        raise _invalid(
            ppfmt, "Invalid DNS response: no TXT records or all TXT records are empty"
        )
    try:
        return parse_ip(ip_string)
    except ValueError as err:
        raise _invalid(
            ppfmt,
            "Invalid DNS response: failed to parse the IP address in the TXT record: %s",
            ip_string,
        ) from err


@dataclass(frozen=True)
class DNSOverHTTPSParam:
    """The DoH server, the name to query and its DNS class."""

    url: str
    name: str
    rdclass: int = dns.rdataclass.CH


@dataclass(frozen=True)
class DNSOverHTTPS:
    """Detects the address from a TXT record fetched over DNS over HTTPS."""

    name: str
    params: Mapping[IPFamily, DNSOverHTTPSParam] = field(default_factory=dict)

    def get_ip(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> IPAddress:
        """Detect the address of the given family."""
        param = (self.params or {}).get(ip_family)
        if param is None:
            ppfmt.notice(Emoji.IMPOSSIBLE, "Unhandled IP network: %s", ip_family.describe())
            raise DetectionError("unhandled IP network")

        query_id = secrets.randbits(16)
        query = new_dns_query(ppfmt, query_id, param.name, param.rdclass)
        ip = fetch_ip(
            ppfmt,
            ip_family,
            param.url,
            lambda pp, body: parse_dns_response(pp, body, query_id, param.name, param.rdclass),
            method="POST",
            headers={
                "Content-Type": "application/dns-message",
                "Accept": "application/dns-message",
            },
            body=query,
        )
        return ip_family.normalize_detected_ip(ppfmt, ip)