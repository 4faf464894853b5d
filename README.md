# cfddns

`cfddns` is a library of the parts a dynamic DNS updater is built from.

## What is in it

- **Pretty printing** (`cfddns.pp`): `PrettyPrinter` writes indented,
  optionally emoji-prefixed lines to a text stream, with two verbosity levels
  (`Verbosity.NOTICE`, `Verbosity.INFO`) and once-only messages
  (`info_once`, `notice_once`, `suppress`, keyed by `MessageID`).
  `new_default(stream)` gives a printer with emojis at the default verbosity.
  `join` and `english_join` (plus `join_map` and `english_join_map`) turn
  lists into text such as `"a, b"` or `"a, b, and c"`; an empty list gives
  `"(none)"`.
- **IP detection** (`cfddns.providers` with `cfddns.protocol_base`,
  `cfddns.http_client`, `cfddns.http_protocols`, `cfddns.doh`,
  `cfddns.local`): every provider has a `name` and a
  `get_ip(ppfmt, ip_family)` method that returns an `ipaddress` address for an
  `IPFamily` (`IP4` or `IP6`) or raises `DetectionError`. Detected addresses
  are checked against the family, IPv4-mapped IPv6 addresses are unmapped for
  IPv4, and loopback addresses are rejected. HTTP requests go through shared
  sessions that only connect over the requested address family.
- **Record reconciliation** (`cfddns.setter`): `Setter` brings DNS records
  and WAF lists in line with detected addresses, reporting a `ResponseCode`
  (`NOOP`, `UPDATED`, `UPDATING`, `FAILED`).
- **Monitors** (`cfddns.monitors`, `cfddns.healthchecks`,
  `cfddns.uptimekuma`, `cfddns.monitor_message`): dead man's switches pinged
  with a `MonitorMessage`. `ComposedMonitor` combines several monitors.
- **Notifiers** (`cfddns.notifier`): the `Notifier` interface,
  `NotifierMessage`, and `ComposedNotifier` to combine several notifiers.

## Installation

```
pip install cfddns
```

Python 3.10 or newer is required.

## Quick look

```python
import sys

from cfddns.pp import english_join, new_default
from cfddns.providers import new_ipify, provider_name

ppfmt = new_default(sys.stdout)

print(provider_name(new_ipify()))            # ipify
print(provider_name(None))                   # none
print(english_join(["IPv4", "IPv6"]))        # IPv4 and IPv6
print(english_join(["A", "B", "C"]))         # A, B, and C
```

## Providers

The factory functions in `cfddns.providers`:

| Function | Name | How it detects |
| --- | --- | --- |
| `new_ipify()` | `ipify` | the body of an ipify page |
| `new_cloudflare_trace()` / `new_cloudflare_trace_custom(url)` | `cloudflare.trace` | the `ip=` line of a trace page |
| `new_cloudflare_doh()` | `cloudflare.doh` | a CHAOS-class TXT query for `whoami.cloudflare.` over DNS over HTTPS |
| `new_local()` | `local` | the source address the system picks toward `api.cloudflare.com:443` (no packet is sent) |
| `new_local_with_interface(iface)` | `local.iface:<iface>` | the first global unicast address of the interface, else one above link-local scope |
| `new_custom_url(ppfmt, url)` | `url:(redacted)` | the body of an HTTP(S) page |
| `new_debug_const(ppfmt, raw)` | `debug.const:<ip>` | always the given address |

`new_custom_url` and `new_debug_const` raise `ValueError` for bad input after
explaining it through the printer; `must_new_custom_url` and
`must_new_debug_const` do the same with the printed explanation as the error
text. A plain `http://` URL is accepted with a warning.

`new_composite(ppfmt, primary, static_ips)` returns a `CompositeProvider`
whose `get_all_ips` gives the detected address followed by the static
addresses of the same family, without duplicates.
`close_provider_connections()` drops kept-alive HTTP connections after
detection.

```python
from cfddns.protocol_base import IPFamily
from cfddns.providers import new_cloudflare_trace

ip = new_cloudflare_trace().get_ip(ppfmt, IPFamily.IP4)
```

## Monitors

```python
from cfddns.healthchecks import new_healthchecks
from cfddns.monitor_message import new_messagef
from cfddns.monitors import ComposedMonitor
from cfddns.uptimekuma import new_uptime_kuma

monitor = ComposedMonitor(
    new_healthchecks(ppfmt, "https://monitor.example.com/ping/check-id"),
    new_uptime_kuma(ppfmt, "https://monitor.example.com/api/push/check-id"),
)
monitor.start(ppfmt, "starting")
monitor.ping(ppfmt, new_messagef(True, "updated %s", "example.com"))
monitor.exit(ppfmt, "bye")
```

- `Healthchecks` posts to the base URL, `/fail`, `/start`, `/0` and `/log`,
  and counts a ping as successful only on status 200 with the body `OK`.
- `UptimeKuma` sends `status=up&msg=OK` on success and `status=down` with the
  message (or `Failing` when empty) on failure; it only supports `ping`.
  Queries `status=up`, `msg=OK` and `ping=` in the given URL are dropped;
  others are reported and dropped too.
- Both constructors raise `ValueError` for URLs that are not HTTP(S) with a
  host. Pings return `True` or `False` and retry transient failures.
- `ComposedMonitor` stops at the first failing member; in `log`, plain
  `BasicMonitor`s receive a `ping` only for failing messages.
- `merge_messages` combines `MonitorMessage`s, keeping only the lines of the
  most severe status.

## Setter

`Setter(handle)` works through a DNS API handle that you supply. The handle
has `list_records`, `update_record`, `create_record`, `delete_record`,
`list_waf_list_items`, `create_waf_list_items`, `delete_waf_list_items` and
`final_clear_waf_list_async`, and reports failure by returning `None` or
`False`. `Setter` provides:

- `set(...)`: keep one record with the address, reusing a stale record
  before creating one, then delete stale records and duplicates;
- `set_multiple(...)`: make the records match a list of addresses;
- `final_delete(...)`: delete all managed records (with `DeletionMode.FINAL`);
- `set_waf_list(...)`: keep WAF list ranges covering detected addresses and
  add `/32` (IPv4) or `/64` (IPv6) ranges where none does; a family mapped to
  `None` keeps its existing ranges;
- `final_clear_waf_list(...)`: delete the list or start clearing it.

The record methods take an optional `cancel` object with `is_set()`, such as
`threading.Event`, to stop early.

## What it does not do

- It has no command-line program, configuration loading or update schedule;
  it is a library to build such a program on.
- It does not talk to a DNS provider's API itself: `Setter` needs a handle
  that does.
- It contains no concrete notification service. `Notifier` is an interface
  to implement; `describe_shoutrrr_service` only turns a service scheme such
  as `discord` into a display name.

## Running the tests

```
pip install "cfddns[test]"
pytest
```