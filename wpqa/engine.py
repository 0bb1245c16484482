"""QA run orchestration.

Init → Resolve → [Precondition] → Scan(×N) → Aggregate → Write →
[Activation probe] → Summary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from wpqa import config
from wpqa.aggregator import FindingAggregator
from wpqa.bridge import CodingStandards, SyntaxChecker, ToolRunner, WPCli
from wpqa.errors import ActivationStateError, CheckFailure, PreconditionError
from wpqa.models import (
    CRITICAL,
    REVIEW,
    FileCandidate,
    Finding,
    ReportSection,
    RunSummary,
    ScanTarget,
    Statistics,
)
from wpqa.probe import ActivationProbe, probe_lock
from wpqa.profiles import COMPATIBILITY, LINT, TOOL_TITLES, WPCS, Profile
from wpqa.report import ReportWriter
from wpqa.rules import CHECKS, Check
from wpqa.scanner import read_source, scan_check
from wpqa.walker import count_lines, walk

logger = logging.getLogger("wpqa.engine")

UNINSTALL_FILE = "uninstall.php"
UNINSTALL_PREVIEW_LINES = 50
LINT_CHECK = Check(LINT, TOOL_TITLES[LINT], CRITICAL, description="Files failing php -l")
ACTIVATION = "activation"
SKIPPED = "skipped: run interrupted"


@dataclass
class RunContext:
    """Everything a run needs, threaded through each step."""
    target: ScanTarget
    profile: Profile
    report_dir: Path
    exclusions: frozenset[str] = field(default_factory=frozenset)
    php_version: str = config.PHP_VERSION
    wp_root: Path | None = None  # None disables the activation probe

    @property
    def activation_enabled(self) -> bool:
        return self.profile.activation and self.wp_root is not None


class QAEngine:
    """Runs one profile against one plugin tree."""

    def __init__(
        self,
        ctx: RunContext,
        runner: ToolRunner | None = None,
        progress: Callable[[str], None] | None = None,
    ):
        self.ctx = ctx
        self.runner = runner or ToolRunner()
        self.progress = progress or (lambda msg: logger.info("%s", msg))
        self.writer = ReportWriter(ctx.report_dir)
        self._cancelled = False
        self._sources: dict[Path, str | OSError] = {}

    # ── Control ──────────────────────────────────────────────────────

    def cancel(self) -> None:
        """Finish the current check, skip the rest, still write reports."""
        if not self._cancelled:
            logger.warning("Run interrupted; finishing current check")
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    # ── Helpers ──────────────────────────────────────────────────────

    def _read(self, candidate: FileCandidate) -> str:
        if candidate.path not in self._sources:
            try:
                self._sources[candidate.path] = read_source(candidate)
            except OSError as e:
                self._sources[candidate.path] = e
        source = self._sources[candidate.path]
        if isinstance(source, OSError):
            raise source
        return source

    def candidates(self) -> list[FileCandidate]:
        return list(
            walk(self.ctx.target.root, self.ctx.exclusions, self.ctx.profile.source_extensions)
        )

    def check_precondition(self) -> WPCli | None:
        """Fail fast if the activation probe cannot possibly run."""
        if not self.ctx.activation_enabled:
            return None
        wp = WPCli(self.ctx.wp_root, runner=self.runner)
        if not wp.is_installed():
            raise PreconditionError(f"WordPress not detected at {self.ctx.wp_root}")
        return wp

    def _uninstall_notes(self) -> list[str]:
        path = self.ctx.target.root / UNINSTALL_FILE
        if not path.is_file():
            return [f"{UNINSTALL_FILE} NOT found (ensure an uninstall hook exists)"]
        notes = [f"{UNINSTALL_FILE} found", "", "Content preview:", "----------------"]
        try:
            lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            return notes + [f"(unreadable: {e})"]
        return notes + lines[:UNINSTALL_PREVIEW_LINES]

    # ── Steps ────────────────────────────────────────────────────────

    def _run_check(self, agg: FindingAggregator, check: Check, files: list[FileCandidate]) -> None:
        try:
            skipped: list[str] = []
            findings = scan_check(
                check, files, self.ctx.profile.source_extensions, reader=self._read, skipped=skipped
            )
            notes = self._uninstall_notes() if check.name == "uninstall-safety" else None
        except (OSError, CheckFailure) as e:
            agg.add_failure(check.name, check.title, check.severity, str(e))
            return
        agg.add_findings(check, findings, notes, skipped)

    def _run_tool(self, agg: FindingAggregator, tool: str, files: list[FileCandidate]) -> None:
        root = self.ctx.target.root
        title = TOOL_TITLES[tool]
        try:
            if tool == COMPATIBILITY:
                result = CodingStandards(self.runner).compatibility(
                    root, self.ctx.exclusions, self.ctx.php_version
                )
                agg.add_tool_output(tool, f"{title} [PHP {self.ctx.php_version}]", result)
            elif tool == WPCS:
                result = CodingStandards(self.runner).wordpress(root, self.ctx.exclusions)
                agg.add_tool_output(tool, title, result)
            elif tool == LINT:
                failing, unchecked, _ = SyntaxChecker(self.runner).run(files)
                findings = [Finding(LINT, path, None, "syntax error") for path in failing]
                agg.add_findings(LINT_CHECK, findings, skipped=unchecked)
            else:
                raise CheckFailure(f"Unknown tool step: {tool}")
        except CheckFailure as e:
            severity = CRITICAL if tool == LINT else REVIEW
            agg.add_failure(tool, title, severity, str(e))

    def _probe(self, wp: WPCli, summary: RunSummary) -> None:
        slug = self.ctx.target.name
        index = len(summary.sections) + 1
        title = f"Plugin Activation Probe ({slug})"
        section = ReportSection(name=ACTIVATION, title=title, severity=REVIEW)
        try:
            with probe_lock(self.ctx.wp_root):
                probe = ActivationProbe(wp, slug, debug_test=self.ctx.profile.debug_activation)
                summary.probe = probe.run()
        except CheckFailure as e:
            section.error = str(e)
            logger.warning("Activation probe failed: %s", e)
        except ActivationStateError as e:
            section.error = str(e)
            summary.sections.append(section)
            self.writer.write_section(index, section)
            self.writer.write_summary(summary)
            raise
        if summary.probe is not None:
            lines = list(summary.probe.steps)
            if summary.probe.debug_output.strip():
                lines += ["", "WP_DEBUG activation output:", summary.probe.debug_output.rstrip("\n")]
            section.raw_output = "\n".join(lines) + "\n"
            section.exit_code = 0 if summary.probe.passed else 1
        summary.sections.append(section)
        self.writer.write_section(index, section)

    # ── Run ──────────────────────────────────────────────────────────

    def run(self) -> RunSummary:
        ctx = self.ctx
        wp = self.check_precondition()

        self.progress(f"Collecting files under {ctx.target.root}")
        files = self.candidates()
        php_files, php_lines = count_lines(files)

        agg = FindingAggregator()
        steps: list[tuple[str, str, str, Callable[[], None]]] = []
        for name in ctx.profile.checks:
            check = CHECKS[name]
            steps.append(
                (name, check.title, check.severity, lambda c=check: self._run_check(agg, c, files))
            )
        for tool in ctx.profile.tools:
            severity = CRITICAL if tool == LINT else REVIEW
            steps.append(
                (tool, TOOL_TITLES[tool], severity, lambda t=tool: self._run_tool(agg, t, files))
            )

        for name, title, severity, step in steps:
            if self._cancelled:
                agg.add_failure(name, title, severity, SKIPPED)
                continue
            self.progress(title)
            step()

        summary = RunSummary(
            target=ctx.target,
            profile=ctx.profile.name,
            exclusions=tuple(sorted(ctx.exclusions)),
            sections=agg.sections,
            statistics=Statistics(php_files=php_files, php_lines=php_lines),
            interrupted=self._cancelled,
        )
        if agg.activation_skipped:
            summary.activation_skipped = True
            summary.skip_reason = agg.skip_reason
            if wp is not None:
                logger.warning(
                    "Skipping activation probe for %s: %s", ctx.target.name, summary.skip_reason
                )

        self.writer.prepare()
        descriptions = {c.name: c.description for c in (*CHECKS.values(), LINT_CHECK)}
        self.writer.write_sections(summary, descriptions)

        if wp is not None and not summary.activation_skipped and not self._cancelled:
            self.progress("Testing plugin activation & deactivation via WP-CLI")
            self._probe(wp, summary)

        self.writer.write_summary(summary)
        return summary
