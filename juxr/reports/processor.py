"""Rewriting of reports on their way through export and import."""

import dataclasses
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from pydantic import Field

from juxr.models.base import Model
from juxr.models.report import TestCase, TestSuite, TestSuites

log = logging.getLogger(__name__)

REDACTED = "****"

# https://plugins.jenkins.io/junit-attachments/ reference syntax
ATTACHMENT_PATTERN = re.compile(r"(\s*)\[\[ATTACHMENT\|([^\]]+)\]\](\s*)")


class ProcessorSettings(Model):
    """Renaming and redaction applied to every processed report."""

    suite_prefix: str = Field(default="", description="Prepended to suite names")
    suite_suffix: str = Field(default="", description="Appended to suite names")
    name_prefix: str = Field(default="", description="Prepended to test case names")
    name_suffix: str = Field(default="", description="Appended to test case names")
    class_prefix: str = Field(default="", description="Prepended to class names")
    class_suffix: str = Field(default="", description="Appended to class names")
    secrets: Sequence[str] = Field(
        default_factory=tuple, description="Values replaced with ****"
    )
    attachment_root: str | None = Field(
        default=None,
        description="Directory that attachment references are rebased onto",
    )


@dataclass(frozen=True, kw_only=True)
class ProcessedReport:
    """A rewritten report and the attachments it references."""

    report: TestSuites
    attachments: Sequence[str]


class ReportProcessor:
    """Applies :class:`ProcessorSettings` to a report document."""

    def __init__(self, settings: ProcessorSettings | None = None) -> None:
        self.settings = settings or ProcessorSettings()
        # longest first so that a secret containing another is fully redacted
        self._secrets = sorted(
            {secret for secret in self.settings.secrets if secret},
            key=lambda s: (-len(s), s),
        )

    def with_attachment_root(self, root: str) -> "ReportProcessor":
        return ReportProcessor(
            self.settings.model_copy(update={"attachment_root": root})
        )

    def process(self, report: TestSuites) -> ProcessedReport:
        attachments: list[str] = []
        suites = tuple(self._suite(suite, attachments) for suite in report.suites)
        return ProcessedReport(
            report=dataclasses.replace(report, suites=suites),
            attachments=sorted(set(attachments)),
        )

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def _suite(self, suite: TestSuite, attachments: list[str]) -> TestSuite:
        s = self.settings
        return dataclasses.replace(
            suite,
            name=f"{s.suite_prefix}{suite.name}{s.suite_suffix}",
            cases=tuple(self._case(case, attachments) for case in suite.cases),
            properties=tuple(
                (name, self.redact(value)) for name, value in suite.properties
            ),
            output=self._text(suite.output, attachments),
            error_output=self._text(suite.error_output, attachments),
        )

    def _case(self, case: TestCase, attachments: list[str]) -> TestCase:
        s = self.settings
        return dataclasses.replace(
            case,
            name=f"{s.name_prefix}{case.name}{s.name_suffix}",
            classname=f"{s.class_prefix}{case.classname}{s.class_suffix}",
            message=self.redact(case.message) if case.message is not None else None,
            details=self._text(case.details, attachments),
            output=self._text(case.output, attachments),
            error_output=self._text(case.error_output, attachments),
        )

    def _text(self, text: str, attachments: list[str]) -> str:
        if not text:
            return text

        def rebase(match: re.Match[str]) -> str:
            path = match[2].replace("\\", "/")
            attachments.append(path)
            if self.settings.attachment_root is not None:
                root = PurePosixPath(self.settings.attachment_root)
                path = str(root / path.lstrip("/"))
            return f"{match[1]}[[ATTACHMENT|{path}]]{match[3]}"

        return self.redact(ATTACHMENT_PATTERN.sub(rebase, text))
