"""Finding aggregation into report sections."""

from __future__ import annotations

import logging

from wpqa.models import CRITICAL, REVIEW, Finding, ReportSection, ToolResult
from wpqa.rules import HIGH_RISK_CHECK, Check

logger = logging.getLogger("wpqa.aggregator")


class FindingAggregator:
    """Collects one ReportSection per check, in run order.

    A section name can only be added once; every finding therefore belongs to
    exactly one section.
    """

    def __init__(self) -> None:
        self._sections: dict[str, ReportSection] = {}

    @property
    def sections(self) -> list[ReportSection]:
        return list(self._sections.values())

    def _add(self, section: ReportSection) -> ReportSection:
        if section.name in self._sections:
            raise ValueError(f"Section already recorded: {section.name}")
        self._sections[section.name] = section
        return section

    def add_findings(
        self,
        check: Check,
        findings: list[Finding],
        notes: list[str] | None = None,
        skipped: list[str] | None = None,
    ) -> ReportSection:
        section = ReportSection(
            name=check.name,
            title=check.title,
            severity=check.severity,
            findings=list(findings),
            notes=list(notes or []),
            skipped=list(skipped or []),
        )
        logger.debug("%s: %d finding(s)", check.name, section.count)
        if section.skipped:
            logger.warning("%s: %d file(s) not scanned", check.name, len(section.skipped))
        return self._add(section)

    def add_tool_output(self, name: str, title: str, result: ToolResult) -> ReportSection:
        """Record an external tool's raw output verbatim."""
        return self._add(
            ReportSection(
                name=name,
                title=title,
                severity=REVIEW,
                raw_output=result.output,
                exit_code=result.returncode,
            )
        )

    def add_failure(self, name: str, title: str, severity: str, error: str) -> ReportSection:
        logger.warning("%s failed: %s", name, error)
        return self._add(ReportSection(name=name, title=title, severity=severity, error=error))

    def get(self, name: str) -> ReportSection | None:
        return self._sections.get(name)

    def count(self, name: str) -> int:
        section = self._sections.get(name)
        return section.count if section else 0

    @property
    def total(self) -> int:
        return sum(s.count for s in self._sections.values())

    @property
    def critical(self) -> list[ReportSection]:
        return [s for s in self._sections.values() if s.severity == CRITICAL and s.count]

    @property
    def skip_reason(self) -> str:
        """Why the plugin must not be executed, or "" when it may be."""
        if self.count(HIGH_RISK_CHECK) > 0:
            return "high-risk functions detected"
        section = self._sections.get(HIGH_RISK_CHECK)
        if section is not None and section.failed:
            return "high-risk scan did not complete"
        if section is not None and section.skipped:
            return "high-risk scan incomplete, files could not be read"
        return ""

    @property
    def activation_skipped(self) -> bool:
        return bool(self.skip_reason)
