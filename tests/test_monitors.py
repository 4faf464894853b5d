import io
import itertools

import pytest

from cfddns.monitor_message import MonitorMessage
from cfddns.monitors import BasicMonitor, ComposedMonitor, Monitor
from cfddns.pp import PrettyPrinter, Verbosity


class FakeMonitor(Monitor):
    def __init__(self, result=True, described=None):
        self.result = result
        self.described = described or []
        self.calls = []

    def describe(self):
        self.calls.append(("describe",))
        yield from self.described

    def ping(self, ppfmt, msg):
        self.calls.append(("ping", ppfmt, msg))
        return self.result

    def start(self, ppfmt, message):
        self.calls.append(("start", ppfmt, message))
        return self.result

    def exit(self, ppfmt, message):
        self.calls.append(("exit", ppfmt, message))
        return self.result

    def log(self, ppfmt, msg):
        self.calls.append(("log", ppfmt, msg))
        return self.result


class FakeBasicMonitor(BasicMonitor):
    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def describe(self):
        self.calls.append(("describe",))
        yield "basic", "params"

    def ping(self, ppfmt, msg):
        self.calls.append(("ping", ppfmt, msg))
        return self.result


@pytest.fixture
def ppfmt():
    return PrettyPrinter(io.StringIO(), True, Verbosity.INFO)


LINES = {"nil": None, "empty": (), "one": ("hi",), "two": ("hi", "hey")}


def test_composed_flattens_and_skips_none():
    ms = [FakeMonitor() for _ in range(3)]
    composed = ComposedMonitor(ComposedMonitor(ms[0], None), ComposedMonitor(ms[1], ms[2]), None)
    assert composed.monitors == tuple(ms)


def test_composed_describe_is_lazy():
    first = [FakeMonitor(described=[("name", "params")]) for _ in range(3)]
    second = [FakeMonitor(described=[("name", "params")]) for _ in range(2)]
    composed = ComposedMonitor(ComposedMonitor(*first), ComposedMonitor(*second))

    count = 0
    for _ in composed.describe():
        count += 1
        if count >= 3:
            break
    assert count == 3
    assert all(m.calls == [] for m in second)


def test_composed_describe_all():
    composed = ComposedMonitor(FakeMonitor(described=[("a", "1")]), FakeBasicMonitor())
    assert list(composed.describe()) == [("a", "1"), ("basic", "params")]


@pytest.mark.parametrize("ok", [True, False], ids=["ok", "not-ok"])
@pytest.mark.parametrize("lines", list(LINES.values()), ids=list(LINES))
def test_composed_ping(ppfmt, lines, ok):
    msg = MonitorMessage(ok=ok, lines=lines)
    ms = [FakeMonitor() for _ in range(5)]
    assert ComposedMonitor(*ms).ping(ppfmt, msg) is True
    assert all(m.calls == [("ping", ppfmt, msg)] for m in ms)


def test_composed_ping_stops_at_failure(ppfmt):
    msg = MonitorMessage(ok=True, lines=("hi",))
    ms = [FakeMonitor(result=False), FakeMonitor()]
    assert ComposedMonitor(*ms).ping(ppfmt, msg) is False
    assert ms[1].calls == []


def test_composed_start(ppfmt):
    ms = [FakeMonitor() for _ in range(5)]
    assert ComposedMonitor(*ms).start(ppfmt, "你好") is True
    assert all(m.calls == [("start", ppfmt, "你好")] for m in ms)


def test_composed_start_skips_basic(ppfmt):
    basic = FakeBasicMonitor()
    full = FakeMonitor()
    assert ComposedMonitor(basic, full).start(ppfmt, "go") is True
    assert basic.calls == []
    assert full.calls == [("start", ppfmt, "go")]


def test_composed_exit(ppfmt):
    ms = [FakeMonitor() for _ in range(5)]
    assert ComposedMonitor(*ms).exit(ppfmt, "bye!") is True
    assert all(m.calls == [("exit", ppfmt, "bye!")] for m in ms)


def test_composed_exit_failure(ppfmt):
    ms = [FakeMonitor(), FakeMonitor(result=False), FakeMonitor()]
    assert ComposedMonitor(*ms).exit(ppfmt, "bye!") is False
    assert ms[2].calls == []


@pytest.mark.parametrize("ok", [True, False], ids=["ok", "not-ok"])
@pytest.mark.parametrize("lines", list(LINES.values()), ids=list(LINES))
def test_composed_log(ppfmt, lines, ok):
    msg = MonitorMessage(ok=ok, lines=lines)
    full = [FakeMonitor() for _ in range(3)]
    basic = [FakeBasicMonitor() for _ in range(2)]
    assert ComposedMonitor(*itertools.chain(full, basic)).log(ppfmt, msg) is True
    assert all(m.calls == [("log", ppfmt, msg)] for m in full)
    expected_basic = [] if ok else [("ping", ppfmt, msg)]
    assert all(m.calls == expected_basic for m in basic)


def test_composed_log_failure(ppfmt):
    msg = MonitorMessage(ok=False, lines=("oops",))
    basic = FakeBasicMonitor(result=False)
    after = FakeMonitor()
    assert ComposedMonitor(basic, after).log(ppfmt, msg) is False
    assert after.calls == []