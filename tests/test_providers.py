import io
import ipaddress

import pytest

from cfddns.pp import PrettyPrinter, Verbosity
from cfddns.protocol_base import Const, DetectionError, IPFamily
from cfddns.providers import (
    FIELD_IP,
    must_new_custom_url,
    must_new_debug_const,
    new_cloudflare_doh,
    new_cloudflare_trace,
    new_cloudflare_trace_custom,
    new_composite,
    new_custom_url,
    new_debug_const,
    new_ipify,
    new_local,
    new_local_with_interface,
    provider_name,
)


def _printer():
    buf = io.StringIO()
    return PrettyPrinter(buf, False, Verbosity.INFO), buf


def test_cloudflare_doh_name():
    assert provider_name(new_cloudflare_doh()) == "cloudflare.doh"


def test_cloudflare_trace_name():
    assert provider_name(new_cloudflare_trace()) == "cloudflare.trace"


def test_cloudflare_trace_custom_url_and_pattern():
    p = new_cloudflare_trace_custom("https://example.com/trace")
    assert p.params[IPFamily.IP6].url == "https://example.com/trace"
    match = FIELD_IP.search("fl=1\nip=1.2.3.4\nts=1")
    assert match is not None and match.group(1) == "1.2.3.4"


def test_ipify_name():
    assert provider_name(new_ipify()) == "ipify"


def test_local_name():
    assert provider_name(new_local()) == "local"


def test_local_with_interface_name():
    p = new_local_with_interface("eth0")
    assert provider_name(p) == "local.iface:eth0"
    assert p.interface_name == "eth0"


def test_none_name():
    assert provider_name(None) == "none"


def test_debug_const_name():
    assert provider_name(must_new_debug_const("1.1.1.1")) == "debug.const:1.1.1.1"


@pytest.mark.parametrize("raw, expected", [("1.1.1.1", "1.1.1.1"), ("1::1%1", "1::1%1")])
def test_must_debug_const_ok(raw, expected):
    assert must_new_debug_const(raw).ip == ipaddress.ip_address(expected)


@pytest.mark.parametrize("raw", ["", "blah"])
def test_must_debug_const_fail(raw):
    with pytest.raises(ValueError, match="following"):
        must_new_debug_const(raw)


def test_new_debug_const_message():
    ppfmt, buf = _printer()
    with pytest.raises(ValueError):
        new_debug_const(ppfmt, "blah")
    assert buf.getvalue() == 'Failed to parse the IP address "blah" following "const:"\n'


def test_custom_url_name():
    assert provider_name(must_new_custom_url("https://1.1.1.1/")) == "url:(redacted)"


@pytest.mark.parametrize(
    "raw, ok, output",
    [
        ("https://1.2.3.4", True, ""),
        (":::::", False, "Failed to parse the provider url:(redacted)\n"),
        (
            "http://1.2.3.4",
            True,
            "The provider url:(redacted) uses HTTP; consider using HTTPS instead\n",
        ),
        ("ftp://1.2.3.4", False, "The provider url:(redacted) only supports HTTP and HTTPS\n"),
        ("", False, "The provider url:(redacted) does not contain a valid URL\n"),
    ],
)
def test_new_custom(raw, ok, output):
    ppfmt, buf = _printer()
    if ok:
        p = new_custom_url(ppfmt, raw)
        assert p.urls[IPFamily.IP4] == raw
        assert p.urls[IPFamily.IP6] == raw
    else:
        with pytest.raises(ValueError):
            new_custom_url(ppfmt, raw)
    assert buf.getvalue() == output


@pytest.mark.parametrize(
    "raw, ok",
    [
        ("https://1.2.3.4", True),
        (":::::", False),
        ("http://1.2.3.4", True),
        ("ftp://1.2.3.4", False),
        ("", False),
    ],
)
def test_must_new_custom(raw, ok):
    if ok:
        assert must_new_custom_url(raw).name == "url:(redacted)"
    else:
        with pytest.raises(ValueError):
            must_new_custom_url(raw)


def test_composite_name_and_ips():
    ppfmt, _ = _printer()
    primary = Const("debug.const:1.2.3.4", ipaddress.ip_address("1.2.3.4"))
    p = new_composite(ppfmt, primary, ["  ", " 5.6.7.8 ", "2001:db8::1", "1.2.3.4"])
    assert p.name == "debug.const:1.2.3.4+static[5.6.7.8,2001:db8::1,1.2.3.4]"
    assert p.get_ip(ppfmt, IPFamily.IP4) == ipaddress.ip_address("1.2.3.4")
    assert p.get_all_ips(ppfmt, IPFamily.IP4) == [
        ipaddress.ip_address("1.2.3.4"),
        ipaddress.ip_address("5.6.7.8"),
    ]


def test_composite_primary_failure():
    ppfmt, _ = _printer()
    primary = Const("c", ipaddress.ip_address("1.2.3.4"))
    p = new_composite(ppfmt, primary, ["2001:db8::1"])
    with pytest.raises(DetectionError):
        p.get_all_ips(ppfmt, IPFamily.IP6)


def test_composite_invalid_static():
    ppfmt, buf = _printer()
    primary = Const("c", ipaddress.ip_address("1.2.3.4"))
    with pytest.raises(ValueError):
        new_composite(ppfmt, primary, ["not-an-ip"])
    assert buf.getvalue() == 'Failed to parse static IP address "not-an-ip"\n'