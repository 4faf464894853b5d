from cfddns.monitor_message import (
    MonitorMessage,
    merge_messages,
    new_message,
    new_messagef,
)


def test_new_message_is_empty_and_ok():
    msg = new_message()
    assert msg.ok is True
    assert msg.is_empty()
    assert msg.format() == ""


def test_new_messagef_formats_one_line():
    msg = new_messagef(False, "hello %s", "world")
    assert msg.ok is False
    assert msg.lines == ("hello world",)
    assert not msg.is_empty()


def test_new_messagef_without_args_keeps_text():
    msg = new_messagef(True, "100%")
    assert msg.lines == ("100%",)


def test_format_joins_with_newlines():
    msg = MonitorMessage(ok=True, lines=["hi", "hey"])
    assert msg.format() == "hi\nhey"
    assert msg.format().split("\n") == list(msg.lines)


def test_lines_none_treated_as_empty():
    assert MonitorMessage(ok=False, lines=None).is_empty()


def test_merge_all_ok_keeps_all_lines():
    a = new_messagef(True, "a")
    b = new_messagef(True, "b")
    merged = merge_messages(a, b)
    assert merged.ok is True
    assert merged.lines == a.lines + b.lines


def test_merge_failure_keeps_only_failures():
    good = new_messagef(True, "fine")
    bad1 = new_messagef(False, "broken")
    bad2 = new_messagef(False, "also broken")
    merged = merge_messages(good, bad1, bad2)
    assert merged.ok is False
    assert merged.lines == bad1.lines + bad2.lines


def test_merge_nothing_is_empty_ok():
    merged = merge_messages()
    assert merged == new_message()


def test_merge_single_is_identity():
    msg = new_messagef(False, "oops")
    assert merge_messages(msg) == msg