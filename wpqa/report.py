"""Plain-text report artifacts.

Every artifact is deterministic for an unchanged tree except for lines that
start with ``Generated:``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path

from wpqa import config
from wpqa.models import INFO, ReportSection, RunSummary
from wpqa.rules import RECOMMENDATIONS

logger = logging.getLogger("wpqa.report")

NONE_FOUND = "None found"
RULE = "─" * 68
HEAVY_RULE = "═" * 68
_ARTIFACT_RE = re.compile(r"^\d{2}-.+\.txt$")


def _stamp() -> str:
    return f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"


def _header(title: str) -> list[str]:
    return [title, "=" * len(title), _stamp(), ""]


def artifact_name(index: int, section: ReportSection) -> str:
    return f"{index:02d}-{section.name}.txt"


def render_section(section: ReportSection, description: str = "") -> str:
    lines = _header(section.title)
    if description:
        lines += [description + ":", ""]
    lines += section.notes
    if section.notes:
        lines.append("")
    if section.skipped:
        lines.append("Files not scanned:")
        lines += [f"   {entry}" for entry in section.skipped]
        lines.append("")

    if section.failed:
        lines.append(f"Check failed: {section.error}")
    elif section.is_tool_output:
        output = section.raw_output.rstrip("\n")
        lines.append(output if output else NONE_FOUND)
        lines += ["", RULE, f"Exit code: {section.exit_code}"]
    elif not section.findings:
        lines.append(NONE_FOUND)
        lines += ["", RULE, "Total: 0"]
    else:
        current = None
        for f in section.findings:
            if f.rule != current:
                if current is not None:
                    lines.append("")
                lines.append(f"[{f.rule}]")
                current = f.rule
            lines.append(f"   {f.render()}")
        lines += ["", RULE, f"Total: {section.count}"]
    return "\n".join(lines) + "\n"


def render_statistics(summary: RunSummary) -> str:
    lines = _header("Plugin Statistics")
    lines += [
        f"Plugin Name: {summary.target.name}",
        f"Total PHP Files: {summary.statistics.php_files}",
        f"Total PHP Lines: {summary.statistics.php_lines}",
        f"Excluded Directories: {' '.join(summary.exclusions)}",
    ]
    return "\n".join(lines) + "\n"


def _count_cell(section: ReportSection) -> str:
    if section.failed or section.is_tool_output:
        return "-"
    return str(section.count)


def render_table(sections: list[ReportSection]) -> list[str]:
    border = f"+-{'-' * 35}-+-{'-' * 8}-+-{'-' * 10}-+"
    lines = [border, f"| {'Check':<35} | {'Count':>8} | {'Severity':<10} |", border]
    for s in sections:
        lines.append(f"| {s.name:<35} | {_count_cell(s):>8} | {s.severity_label:<10} |")
    lines.append(border)
    return lines


def recommendations(summary: RunSummary) -> list[str]:
    """Fixed recommendation lines for every keyed check with findings."""
    out = []
    for s in summary.sections:
        text = RECOMMENDATIONS.get(s.name)
        if text and s.count > 0:
            out.append(f"{text} (see {s.artifact})" if s.artifact else text)
    return out


def _banner(title: str) -> list[str]:
    return ["", HEAVY_RULE, title, HEAVY_RULE]


def render_summary(summary: RunSummary) -> str:
    issues = [s for s in summary.sections if s.severity != INFO]
    measures = [s for s in summary.sections if s.severity == INFO]

    lines = _header("WordPress Plugin QA Summary")
    lines += [
        f"Plugin: {summary.target.name}",
        f"Plugin Path: {summary.target.root}",
        f"Profile: {summary.profile}",
        f"Excluded Directories: {' '.join(summary.exclusions)}",
    ]

    lines += _banner("STATISTICS")
    lines += [
        f"Total PHP Files: {summary.statistics.php_files}",
        f"Total PHP Lines: {summary.statistics.php_lines}",
    ]

    lines += _banner("FINDINGS SUMMARY")
    lines += render_table(issues)
    lines.append(f"Total findings: {summary.total_findings}")

    if measures:
        lines += _banner("SECURITY MEASURES FOUND")
        lines += [f"{s.title}: {s.count}" for s in measures]

    if summary.failures:
        lines += _banner("CHECK FAILURES")
        lines += [f"{s.name}: {s.error}" for s in summary.failures]

    incomplete = [s for s in summary.sections if s.skipped]
    if incomplete:
        lines += _banner("FILES NOT SCANNED")
        lines += [f"{s.name}: {len(s.skipped)} file(s), see {s.artifact or s.name}" for s in incomplete]

    lines += _banner("ACTIVATION PROBE")
    if summary.activation_skipped:
        lines.append(f"Activation tests skipped: yes ({summary.skip_reason})")
    elif summary.probe is None:
        lines.append("Activation tests skipped: no (probe not run)")
    else:
        lines.append("Activation tests skipped: no")
        lines.append(f"Result: {'passed' if summary.probe.passed else 'FAILED'}")
        lines += [f"  {step}" for step in summary.probe.steps]

    if summary.interrupted:
        lines += _banner("RUN INTERRUPTED")
        lines.append("Remaining checks were skipped; reports are partial.")

    lines += _banner("DETAILED REPORTS")
    lines += [config.STATISTICS_FILE] + [s.artifact for s in summary.sections if s.artifact]

    lines += _banner("RECOMMENDATIONS")
    recs = recommendations(summary)
    lines += recs if recs else ["No action items."]
    lines += ["", HEAVY_RULE]
    return "\n".join(lines) + "\n"


class ReportWriter:
    """Writes one artifact per section plus statistics and summary."""

    def __init__(self, report_dir: Path):
        self.report_dir = Path(report_dir)

    def prepare(self) -> None:
        """Create the report directory and drop artifacts from a previous run."""
        self.report_dir.mkdir(parents=True, exist_ok=True)
        for old in self.report_dir.iterdir():
            if old.is_file() and _ARTIFACT_RE.match(old.name):
                old.unlink()

    def _write(self, name: str, text: str) -> Path:
        path = self.report_dir / name
        path.write_text(text, encoding="utf-8")
        logger.debug("Wrote %s", path)
        return path

    def write_sections(
        self,
        summary: RunSummary,
        descriptions: dict[str, str] | None = None,
    ) -> list[Path]:
        descriptions = descriptions or {}
        written = [self._write(config.STATISTICS_FILE, render_statistics(summary))]
        for index, section in enumerate(summary.sections, start=1):
            written.append(self.write_section(index, section, descriptions.get(section.name, "")))
        return written

    def write_section(self, index: int, section: ReportSection, description: str = "") -> Path:
        section.artifact = artifact_name(index, section)
        return self._write(section.artifact, render_section(section, description))

    def write_summary(self, summary: RunSummary) -> Path:
        return self._write(config.SUMMARY_FILE, render_summary(summary))
