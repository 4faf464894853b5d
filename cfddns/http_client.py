"""HTTP sessions restricted to one IP family, and IP detection over HTTP."""

from __future__ import annotations

import ipaddress
import socket
from typing import Callable, Mapping, Optional

import requests
import urllib3.exceptions
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.exceptions import ConnectTimeoutError, NewConnectionError
from urllib3.util.retry import Retry

from cfddns.pp import Emoji, PrettyPrinter
from cfddns.protocol_base import DetectionError, IPAddress, IPFamily

# The maximum number of bytes read from an HTTP response.
MAX_READ_LENGTH = 102400
REQUEST_TIMEOUT = 30.0

_RETRY_STATUSES = tuple([429] + [code for code in range(500, 600) if code != 501])
_FAMILIES = {IPFamily.IP4: socket.AF_INET, IPFamily.IP6: socket.AF_INET6}


class BlockedNetworkError(Exception):
    """Raised when a connection would use the wrong IP family."""


class _FamilyConnectionMixin:
    address_family: int = socket.AF_UNSPEC

    def _new_conn(self) -> socket.socket:
        host = self._dns_host.strip("[]")  # type: ignore[attr-defined]
        try:
            literal = ipaddress.ip_address(host)
        except ValueError:
            literal = None
        if literal is not None and _FAMILIES[
            IPFamily.IP4 if literal.version == 4 else IPFamily.IP6
        ] != self.address_family:
            raise BlockedNetworkError("blocked network")

        try:
            infos = socket.getaddrinfo(host, self.port, self.address_family, socket.SOCK_STREAM)  # type: ignore[attr-defined]
        except OSError as err:
            raise NewConnectionError(self, f"Failed to resolve {host!r}: {err}") from err

        last: Optional[OSError] = None
        for af, socktype, proto, _, addr in infos:
            sock = socket.socket(af, socktype, proto)
            try:
                for option in getattr(self, "socket_options", None) or ():
                    sock.setsockopt(*option)
                timeout = getattr(self, "timeout", None)
                if isinstance(timeout, (int, float)):
                    sock.settimeout(timeout)
                sock.connect(addr)
                return sock
            except socket.timeout as err:
                sock.close()
                raise ConnectTimeoutError(self, f"Connection to {host} timed out") from err
            except OSError as err:
                sock.close()
                last = err
        raise NewConnectionError(self, f"Failed to establish a new connection: {last}")


def _pool_classes(family: int) -> dict:
    class Conn(_FamilyConnectionMixin, HTTPConnection):
        address_family = family

    class SecureConn(_FamilyConnectionMixin, HTTPSConnection):
        address_family = family

    class Pool(HTTPConnectionPool):
        ConnectionCls = Conn

    class SecurePool(HTTPSConnectionPool):
        ConnectionCls = SecureConn

    return {"http": Pool, "https": SecurePool}


class _FamilyAdapter(HTTPAdapter):
    def __init__(self, family: int, **kwargs: object) -> None:
        self._pool_classes = _pool_classes(family)
        super().__init__(**kwargs)  # type: ignore[arg-type]

    def init_poolmanager(self, *args: object, **kwargs: object) -> None:
        super().init_poolmanager(*args, **kwargs)  # type: ignore[arg-type]
        self.poolmanager.pool_classes_by_scheme = dict(self._pool_classes)


def _new_session(ip_family: IPFamily) -> requests.Session:
    retry = Retry(
        total=4,
        connect=4,
        read=4,
        status=4,
        backoff_factor=1.0,
        status_forcelist=_RETRY_STATUSES,
        allowed_methods=None,
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = _FamilyAdapter(_FAMILIES[ip_family], max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


_sessions: dict[IPFamily, requests.Session] = {}


def shared_split_session(ip_family: IPFamily) -> requests.Session:
    """The shared session that only connects over the given IP family."""
    if ip_family not in _sessions:
        _sessions[ip_family] = _new_session(ip_family)
    return _sessions[ip_family]


def close_idle_connections() -> None:
    """Drop kept-alive connections so they do not disturb later detection."""
    for session in _sessions.values():
        session.close()


Extractor = Callable[[PrettyPrinter, bytes], IPAddress]


def fetch_ip(
    ppfmt: PrettyPrinter,
    ip_family: IPFamily,
    url: str,
    extract: Extractor,
    method: str = "GET",
    headers: Optional[Mapping[str, str]] = None,
    body: Optional[bytes] = None,
) -> IPAddress:
    """Send a request over one IP family and extract an address from the reply."""
    session = shared_split_session(ip_family)
    try:
        request = session.prepare_request(
            requests.Request(method, url, headers=dict(headers or {}), data=body)
        )
        response = session.send(request, timeout=REQUEST_TIMEOUT, stream=True)
    except (requests.RequestException, BlockedNetworkError) as err:
        ppfmt.notice(Emoji.ERROR, 'Failed to send HTTP(S) request to "%s": %s', url, err)
        raise DetectionError("request failed") from err
    except ValueError as err:
        ppfmt.notice(Emoji.IMPOSSIBLE, 'Failed to prepare HTTP(S) request to "%s": %s', url, err)
        raise DetectionError("request could not be prepared") from err

    with response:
        try:
            content = response.raw.read(MAX_READ_LENGTH, decode_content=True)
        except (urllib3.exceptions.HTTPError, OSError) as err:
            ppfmt.notice(Emoji.ERROR, 'Failed to read HTTP(S) response from "%s": %s', url, err)
            raise DetectionError("response could not be read") from err

    return extract(ppfmt, content)