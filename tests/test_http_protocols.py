import contextlib
import io
import ipaddress
import re
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from cfddns.http_protocols import HTTP, Regexp, RegexpParam
from cfddns.pp import PrettyPrinter, Verbosity
from cfddns.protocol_base import DetectionError, IPFamily

IP4 = "1.2.3.4"
IP6 = "::1:2:3:4:5:6"


@contextlib.contextmanager
def _server(text):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            data = text.encode()
            self.send_response(200)
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


def _pp():
    buf = io.StringIO()
    return buf, PrettyPrinter(buf, True, Verbosity.INFO)


def test_names():
    assert HTTP("very secret name").name == "very secret name"
    assert Regexp("very secret name").name == "very secret name"


def test_http_ip4():
    buf, ppfmt = _pp()
    with _server(IP4) as url:
        ip = HTTP("n", {IPFamily.IP4: url}).get_ip(ppfmt, IPFamily.IP4)
    assert ip == ipaddress.ip_address(IP4)
    assert buf.getvalue() == ""


def test_http_6to4():
    buf, ppfmt = _pp()
    with _server(IP6) as url, pytest.raises(DetectionError):
        HTTP("n", {IPFamily.IP4: url}).get_ip(ppfmt, IPFamily.IP4)
    assert buf.getvalue() == f"😞 Detected IP address {IP6} is not a valid IPv4 address\n"


def test_http_illformed():
    buf, ppfmt = _pp()
    with _server("hello") as url, pytest.raises(DetectionError):
        HTTP("n", {IPFamily.IP4: url}).get_ip(ppfmt, IPFamily.IP4)
    assert buf.getvalue() == (
        f'😞 Failed to parse the IP address in the response of "{url}" ("hello")\n'
    )


def test_http_request_fail():
    buf, ppfmt = _pp()
    with pytest.raises(DetectionError):
        HTTP("n", {IPFamily.IP4: ""}).get_ip(ppfmt, IPFamily.IP4)
    assert buf.getvalue().startswith('😞 Failed to send HTTP(S) request to "": ')


@pytest.mark.parametrize(
    "key,asked,label",
    [(IPFamily.IP4, IPFamily.IP6, "IPv6"), (IPFamily.IP6, IPFamily.IP4, "IPv4")],
)
def test_not_handled(key, asked, label):
    buf, ppfmt = _pp()
    with pytest.raises(DetectionError):
        HTTP("n", {key: "http://127.0.0.1:9"}).get_ip(ppfmt, asked)
    with pytest.raises(DetectionError):
        Regexp("n", {key: RegexpParam("http://127.0.0.1:9", "x")}).get_ip(ppfmt, asked)
    assert buf.getvalue() == f"🤯 Unhandled IP network: {label}\n" * 2


def test_regexp_ip4():
    _, ppfmt = _pp()
    with _server(f"<<{IP4}>>") as url:
        param = RegexpParam(url, re.compile(rb"<<(.*)>>"))
        ip = Regexp("n", {IPFamily.IP4: param}).get_ip(ppfmt, IPFamily.IP4)
    assert ip == ipaddress.ip_address(IP4)


def test_regexp_illformed():
    buf, ppfmt = _pp()
    with _server("<<hello>>") as url, pytest.raises(DetectionError):
        Regexp("n", {IPFamily.IP4: RegexpParam(url, r"<<(.*)>>")}).get_ip(ppfmt, IPFamily.IP4)
    assert buf.getvalue() == (
        f'😞 Failed to parse the IP address in the response of "{url}" ("hello")\n'
    )


def test_regexp_no_match():
    buf, ppfmt = _pp()
    with _server("<<hello>>") as url, pytest.raises(DetectionError):
        Regexp("n", {IPFamily.IP4: RegexpParam(url, "some random string")}).get_ip(
            ppfmt, IPFamily.IP4
        )
    assert buf.getvalue() == (
        f'😞 Failed to find the IP address in the response of "{url}" ("<<hello>>")\n'
    )