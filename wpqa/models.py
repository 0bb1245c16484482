"""Data types for the wpqa scanning engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

# ─── Severity ─────────────────────────────────────────────────────────

INFO = "info"
REVIEW = "review"
CRITICAL = "critical"

SEVERITY_LABELS = {
    INFO: "Info",
    REVIEW: "Review",
    CRITICAL: "Critical",
}

# ─── Rule kinds ───────────────────────────────────────────────────────

ABSENCE = "absence"  # flag the file when none of the substrings occur
LINE = "line"  # one finding per matching line
CALL = "call"  # line match anchored to `name(` call syntax


@dataclass(frozen=True)
class ScanTarget:
    """Resolved plugin directory."""
    root: Path
    name: str


@dataclass(frozen=True)
class FileCandidate:
    """A file yielded by the walker."""
    path: Path
    relpath: str  # root-relative, POSIX separators
    extension: str


@dataclass(frozen=True)
class Finding:
    """One located occurrence of a scanned pattern."""
    rule: str
    path: str  # root-relative
    line: int | None  # None for file-level findings
    text: str

    def render(self) -> str:
        if self.line is None:
            return f"{self.path}: {self.text}"
        return f"{self.path}:{self.line}: {self.text}"


@dataclass(frozen=True)
class ToolResult:
    """Captured output of an external command."""
    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


@dataclass
class ReportSection:
    """Aggregated findings for one check or one external-tool invocation."""
    name: str
    title: str
    severity: str
    findings: list[Finding] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # "relpath: error" for files not scanned
    error: str | None = None
    raw_output: str | None = None
    exit_code: int | None = None
    artifact: str = ""

    @property
    def count(self) -> int:
        return len(self.findings)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def is_tool_output(self) -> bool:
        return self.raw_output is not None

    @property
    def severity_label(self) -> str:
        if self.failed:
            return "Error"
        if self.is_tool_output:
            return "OK" if self.exit_code == 0 else "Review"
        if self.count == 0:
            return "OK"
        return SEVERITY_LABELS.get(self.severity, self.severity)


@dataclass
class ProbeResult:
    """Outcome of the WP-CLI activation probe."""
    passed: bool
    was_active: bool = False
    steps: list[str] = field(default_factory=list)
    debug_output: str = ""


@dataclass
class Statistics:
    php_files: int = 0
    php_lines: int = 0


@dataclass
class RunSummary:
    """Terminal artifact of a run."""
    target: ScanTarget
    profile: str
    exclusions: tuple[str, ...]
    sections: list[ReportSection] = field(default_factory=list)
    statistics: Statistics = field(default_factory=Statistics)
    activation_skipped: bool = False
    skip_reason: str = ""
    probe: ProbeResult | None = None
    interrupted: bool = False

    @property
    def total_findings(self) -> int:
        return sum(s.count for s in self.sections if s.severity != INFO)

    @property
    def failures(self) -> list[ReportSection]:
        return [s for s in self.sections if s.failed]

    @property
    def all_failed(self) -> bool:
        return bool(self.sections) and all(s.failed for s in self.sections)

    def section(self, name: str) -> ReportSection | None:
        return next((s for s in self.sections if s.name == name), None)
