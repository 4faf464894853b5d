"""Detection of local addresses: the source address toward a remote host, or an interface's address."""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import Iterable

import psutil

from cfddns.pp import Emoji, PrettyPrinter
from cfddns.protocol_base import DetectionError, IPAddress, IPFamily

_ADDRESS_FAMILIES = {IPFamily.IP4: socket.AF_INET, IPFamily.IP6: socket.AF_INET6}
_IP4_BROADCAST = ipaddress.IPv4Address("255.255.255.255")
_IP4_LINK_LOCAL_MULTICAST = ipaddress.IPv4Network("224.0.0.0/24")


def _unmap(ip: IPAddress) -> IPAddress:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _split_host_port(addr: str) -> tuple[str, str]:
    if not addr:
        raise ValueError("missing address")
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"address {addr}: missing port in address")
    if host.startswith("["):
        if not host.endswith("]"):
            raise ValueError(f"address {addr}: missing ']' in address")
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"address {addr}: too many colons in address")
    return host, port


def extract_udp_addr(ppfmt: PrettyPrinter, sockname: object) -> IPAddress:
    """Turn a UDP socket name into an unmapped address; raise DetectionError otherwise."""
    if not (
        isinstance(sockname, tuple)
        and len(sockname) in (2, 4)
        and isinstance(sockname[0], str)
    ):
        ppfmt.notice(
            Emoji.IMPOSSIBLE,
            'Unexpected UDP source address data "%s" of type %s',
            sockname,
            type(sockname).__name__,
        )
        raise DetectionError("unexpected UDP source address")

    host = sockname[0]
    if "%" not in host and len(sockname) == 4 and sockname[3]:
        host = f"{host}%{sockname[3]}"
    try:
        ip = ipaddress.ip_address(host)
    except ValueError as err:
        ppfmt.notice(Emoji.IMPOSSIBLE, 'Failed to parse UDP source address "%s"', host)
        raise DetectionError("unparsable UDP source address") from err
    return _unmap(ip)


@dataclass(frozen=True)
class LocalAuto:
    """Uses the source address the system would pick to reach a remote host.

    The UDP socket is only connected; no packet is sent.
    """

    name: str
    remote_udp_addr: str

    def get_ip(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> IPAddress:
        """Detect the local address of the given family."""
        try:
            host, port = _split_host_port(self.remote_udp_addr)
            infos = socket.getaddrinfo(
                host, port, _ADDRESS_FAMILIES[ip_family], socket.SOCK_DGRAM
            )
            if not infos:
                raise OSError("no suitable address found")
            af, socktype, proto, _, addr = infos[0]
            with socket.socket(af, socktype, proto) as sock:
                sock.connect(addr)
                sockname = sock.getsockname()
        except (OSError, ValueError) as err:
            ppfmt.notice(
                Emoji.ERROR,
                "Failed to detect a local %s address: %s",
                ip_family.describe(),
                err,
            )
            raise DetectionError("local address detection failed") from err

        ip = extract_udp_addr(ppfmt, sockname)
        return ip_family.normalize_detected_ip(ppfmt, ip)


def extract_interface_addr(ppfmt: PrettyPrinter, iface: str, addr: object) -> IPAddress:
    """Turn an address listed for an interface into an unmapped address."""
    if isinstance(addr, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return _unmap(addr)
    if isinstance(addr, (ipaddress.IPv4Interface, ipaddress.IPv6Interface)):
        return _unmap(addr.ip)
    if isinstance(addr, str):
        try:
            return _unmap(ipaddress.ip_address(addr))
        except ValueError as err:
            ppfmt.notice(
                Emoji.IMPOSSIBLE,
                'Failed to parse address "%s" assigned to interface %s',
                addr,
                iface,
            )
            raise DetectionError("unparsable interface address") from err
    ppfmt.notice(
        Emoji.IMPOSSIBLE,
        'Unexpected address data "%s" of type %s found in interface %s',
        addr,
        type(addr).__name__,
        iface,
    )
    raise DetectionError("unexpected interface address")


def _is_global_unicast(ip: IPAddress) -> bool:
    if ip == _IP4_BROADCAST:
        return False
    return not (ip.is_unspecified or ip.is_loopback or ip.is_multicast or ip.is_link_local)


def _multicast_scope(ip: ipaddress.IPv6Address) -> int:
    return (int(ip) >> 112) & 0x0F


def _is_interface_local_multicast(ip: IPAddress) -> bool:
    return (
        isinstance(ip, ipaddress.IPv6Address) and ip.is_multicast and _multicast_scope(ip) == 1
    )


def _is_link_local_multicast(ip: IPAddress) -> bool:
    if isinstance(ip, ipaddress.IPv4Address):
        return ip in _IP4_LINK_LOCAL_MULTICAST
    return ip.is_multicast and _multicast_scope(ip) == 2


def _above_link_local(ip: IPAddress) -> bool:
    return not (
        ip.is_unspecified
        or ip.is_loopback
        or _is_interface_local_multicast(ip)
        or ip.is_link_local
        or _is_link_local_multicast(ip)
    )


def select_interface_ip(
    ppfmt: PrettyPrinter, iface: str, ip_family: IPFamily, addrs: Iterable[object]
) -> IPAddress:
    """Choose the first reasonable address of the family among an interface's addresses."""
    ips = [extract_interface_addr(ppfmt, iface, addr) for addr in addrs]

    for ip in ips:
        if ip_family.matches(ip) and _is_global_unicast(ip):
            return ip

    for ip in ips:
        if ip_family.matches(ip) and _above_link_local(ip):
            ppfmt.notice(
                Emoji.WARNING,
                "Failed to find any global unicast %s address assigned to interface %s, "
                "but found an address %s with a scope larger than the link-local scope",
                ip_family.describe(),
                iface,
                ip,
            )
            return ip

    ppfmt.notice(
        Emoji.ERROR,
        "Failed to find any global unicast %s address assigned to interface %s",
        ip_family.describe(),
        iface,
    )
    raise DetectionError("no suitable interface address")


@dataclass(frozen=True)
class LocalWithInterface:
    """Uses the first good address assigned to a named network interface."""

    name: str
    interface_name: str

    def get_ip(self, ppfmt: PrettyPrinter, ip_family: IPFamily) -> IPAddress:
        """Detect the interface's address of the given family."""
        interfaces = psutil.net_if_addrs()
        entries = interfaces.get(self.interface_name)
        if entries is None:
            ppfmt.notice(
                Emoji.USER_ERROR,
                'Failed to find an interface named "%s": %s',
                self.interface_name,
                "no such network interface",
            )
            raise DetectionError("no such network interface")

        addrs = [
            entry.address
            for entry in entries
            if entry.family in (socket.AF_INET, socket.AF_INET6)
        ]
        return select_interface_ip(ppfmt, self.interface_name, ip_family, addrs)