"""Tests for needle formatting and parsing."""

import pytest

from juxr.errors import NeedleError
from juxr.streams.needle import Needle, new_session


def test_str_renders_marker_line() -> None:
    """Renders session, kind and name between the marker delimiters."""
    needle = Needle(session="abc", kind="report", name="target/TEST-foo.xml")

    assert str(needle) == "[[juxr::stream::abc::report::target/TEST-foo.xml]]"


def test_parse_reads_back_rendered_needle() -> None:
    """Parses a rendered needle into an equal value."""
    needle = Needle(session="abc", kind="attachment", name="logs/out put.txt")

    assert Needle.parse(str(needle)) == needle


def test_parse_ignores_surrounding_whitespace() -> None:
    """Accepts line terminators and indentation around the needle."""
    line = b"  [[juxr::stream::abc::report::a.xml]]\r\n"

    assert Needle.parse(line) == Needle(session="abc", kind="report", name="a.xml")


@pytest.mark.parametrize(
    "line",
    [
        b"plain output\n",
        b"\n",
        b"log: [[juxr::stream::abc::report::a.xml]]\n",
        b"[[juxr::stream::abc::report::a.xml]] trailing\n",
        b"[[juxr::stream::abc::report]]\n",
    ],
)
def test_parse_returns_none_for_other_lines(line: bytes) -> None:
    """Only a line consisting of a single needle is a needle."""
    assert Needle.parse(line) is None


@pytest.mark.parametrize(
    ("session", "kind", "name"),
    [
        ("", "report", "a.xml"),
        ("a:b", "report", "a.xml"),
        ("abc", "rep ort", "a.xml"),
        ("abc", "report", ""),
        ("abc", "report", "a::b.xml"),
        ("abc", "report", "a]]b.xml"),
        ("abc", "report", "a\nb.xml"),
        ("abc", "report", "a]"),
    ],
)
def test_rejects_invalid_parts(session: str, kind: str, name: str) -> None:
    """Raises NeedleError for parts that would not parse back unambiguously."""
    with pytest.raises(NeedleError):
        Needle(session=session, kind=kind, name=name)


def test_new_session_is_unique() -> None:
    """Generates a fresh session identifier on every call."""
    assert new_session() != new_session()
