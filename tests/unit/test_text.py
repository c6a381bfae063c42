"""
Unit tests for text helpers.
"""
from gator.utils.text import wrap_text


def test_short_text_is_unchanged():
    assert wrap_text("hello world") == "hello world"


def test_wraps_at_width():
    text = "one two three four five"
    assert wrap_text(text, width=9) == "one two\nthree\nfour five"
    assert all(len(line) <= 9 for line in wrap_text(text, width=9).splitlines())


def test_long_word_gets_its_own_line():
    assert wrap_text("a supercalifragilistic b", width=5) == "a\nsupercalifragilistic\nb"


def test_whitespace_collapses():
    assert wrap_text("  a\n\n b\tc  ") == "a b c"


def test_blank_input():
    assert wrap_text("") == ""
    assert wrap_text("   ") == ""
    assert wrap_text(None) == ""
