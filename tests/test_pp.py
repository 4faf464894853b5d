import io

import pytest

from cfddns.pp import (
    Emoji,
    MessageID,
    PrettyPrinter,
    Verbosity,
    english_join,
    english_join_map,
    join,
    join_map,
    new_default,
)


@pytest.mark.parametrize(
    "setting, level, expected",
    [
        (Verbosity.INFO, Verbosity.NOTICE, True),
        (Verbosity.NOTICE, Verbosity.INFO, False),
    ],
)
def test_is_showing(setting, level, expected):
    printer = PrettyPrinter(io.StringIO(), True, setting)
    assert printer.is_showing(level) is expected


def test_indent():
    buf = io.StringIO()
    outer = PrettyPrinter(buf, True, Verbosity.DEFAULT)

    outer.notice(Emoji.STAR, "message1")
    middle = outer.indent()
    middle.notice(Emoji.STAR, "message2")
    inner = middle.indent()
    outer.notice(Emoji.STAR, "message3")
    outer.blank_line_if_verbose()
    inner.notice(Emoji.STAR, "message4")
    inner.blank_line_if_verbose()
    middle.notice(Emoji.STAR, "message5")

    assert buf.getvalue() == (
        "🌟 message1\n"
        "   🌟 message2\n"
        "🌟 message3\n"
        "\n"
        "      🌟 message4\n"
        "\n"
        "   🌟 message5\n"
    )


@pytest.mark.parametrize(
    "emoji, verbosity, expected",
    [
        (True, Verbosity.INFO, "🌟 info\n🌟 notice\n"),
        (True, Verbosity.NOTICE, "🌟 notice\n"),
        (False, Verbosity.INFO, "info\nnotice\n"),
        (False, Verbosity.NOTICE, "notice\n"),
    ],
)
def test_print(emoji, verbosity, expected):
    buf = io.StringIO()
    printer = PrettyPrinter(buf, emoji, verbosity)
    printer.info(Emoji.STAR, "info")
    printer.notice(Emoji.STAR, "notice")
    assert buf.getvalue() == expected


def test_suppress():
    buf = io.StringIO()
    printer = PrettyPrinter(buf, True, Verbosity.INFO)

    printer.suppress(MessageID(0))
    printer.notice_once(MessageID(0), Emoji.ALARM, "hello %s", "world")
    printer.info_once(MessageID(1), Emoji.HINT, "hello %s", "galaxy")
    printer.notice_once(MessageID(1), Emoji.BULLET, "hello %s", "universe")
    printer.notice_once(MessageID(2), Emoji.BYE, "aloha")

    assert buf.getvalue() == "💡 hello galaxy\n👋 aloha\n"


def test_suppression_shared_with_indented_printer():
    buf = io.StringIO()
    printer = PrettyPrinter(buf, True, Verbosity.INFO)
    printer.indent().suppress(MessageID(2))
    printer.notice_once(MessageID(2), Emoji.BYE, "aloha")
    assert buf.getvalue() == ""


def test_new_default_prints_info():
    buf = io.StringIO()
    printer = new_default(buf)
    printer.info(Emoji.STAR, "info")
    assert buf.getvalue() == "🌟 info\n"


@pytest.mark.parametrize(
    "items, expected",
    [
        (None, "(none)"),
        (["hello"], "hello"),
        (["hello", "hey"], "hello, hey"),
        (["hello", "hey", "hi"], "hello, hey, hi"),
    ],
)
def test_join(items, expected):
    assert join(items) == expected


@pytest.mark.parametrize(
    "items, expected",
    [
        (None, "(none)"),
        (["hello"], "hello"),
        (["hello", "hey"], "hello and hey"),
        (["hello", "hey", "hi"], "hello, hey, and hi"),
    ],
)
def test_english_join(items, expected):
    assert english_join(items) == expected


def test_join_map_applies_function():
    assert join_map(str.upper, ["hello", "hey"]) == join(["HELLO", "HEY"])
    assert join_map(str.upper, []) == "(none)"


def test_english_join_map_applies_function():
    assert english_join_map(str.upper, ["hello", "hey", "hi"]) == english_join(["HELLO", "HEY", "HI"])