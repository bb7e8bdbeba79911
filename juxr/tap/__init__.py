"""Conversion of Test Anything Protocol output into JUnit reports."""

from juxr.tap.builder import ReportBuilder
from juxr.tap.parser import TapParser, TapPlan, TapResult
from juxr.tap.runner import parse_tap_stream, run_tap_command

__all__ = [
    "ReportBuilder",
    "TapParser",
    "TapPlan",
    "TapResult",
    "parse_tap_stream",
    "run_tap_command",
]
