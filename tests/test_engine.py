"""
Tests for QAEngine: end-to-end runs over small plugin trees.

External tools are simulated by FakeRunner; nothing here needs phpcs,
php or WP-CLI on PATH.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import GUARD, FakeRunner, make_tree
from wpqa import config
from wpqa.engine import ACTIVATION, SKIPPED, QAEngine, RunContext
from wpqa.errors import ActivationStateError, CheckFailure, PreconditionError
from wpqa.paths import detect_wp_root, resolve_target
from wpqa.probe import probe_lock
from wpqa.profiles import COMPATIBILITY, LINT, WPCS, get_profile
from wpqa.rules import HIGH_RISK_CHECK


def _engine(plugin: Path, reports: Path, profile="security", runner=None, wp=False, **kwargs):
    prof = get_profile(profile)
    target = resolve_target(plugin)
    ctx = RunContext(
        target=target,
        profile=prof,
        report_dir=reports / target.name,
        exclusions=prof.exclusion_set(),
        wp_root=detect_wp_root(target) if wp else None,
    )
    return QAEngine(ctx, runner=runner or FakeRunner(), **kwargs)


def _artifacts(report_dir: Path) -> dict[str, list[str]]:
    return {
        p.name: [l for l in p.read_text().splitlines() if not l.startswith("Generated:")]
        for p in sorted(report_dir.iterdir())
    }


class FailingPhpcs(FakeRunner):
    def run(self, cmd, cwd=None):
        if any(a.startswith("--standard=") for a in cmd):
            raise CheckFailure("'phpcs' not found on PATH")
        return super().run(cmd, cwd)


class SlowLintRunner(FakeRunner):
    def run(self, cmd, cwd=None):
        if "-l" in cmd and str(cmd[-1]).endswith("slow.php"):
            raise CheckFailure("'php' timed out after 5s")
        return super().run(cmd, cwd)


# ─── Scan Scenarios ──────────────────────────────────────────────────


class TestScanScenarios:
    def test_eval_and_unguarded_file_skip_activation(self, wp_site, tmp_path):
        make_tree(
            wp_site,
            {
                "demo-plugin.php": GUARD + "eval($x);\n",
                "inc/helper.php": "<?php\nfunction helper() {}\n",
            },
        )
        runner = FakeRunner()
        summary = _engine(wp_site, tmp_path / "reports", "full", runner, wp=True).run()

        high_risk = summary.section(HIGH_RISK_CHECK)
        assert [f.render() for f in high_risk.findings] == ["demo-plugin.php:3: eval($x);"]
        guards = summary.section("missing-abspath-guards")
        assert [f.path for f in guards.findings] == ["inc/helper.php"]

        assert summary.activation_skipped
        assert summary.probe is None
        assert summary.section(ACTIVATION) is None
        assert runner.wp_calls("plugin", "activate") == []
        assert runner.wp_calls("plugin", "deactivate") == []

        text = (tmp_path / "reports" / "demo-plugin" / config.SUMMARY_FILE).read_text()
        assert "Activation tests skipped: yes (high-risk functions detected)" in text
        assert "CRITICAL: Review high-risk function usage" in text

    def test_unguarded_file_with_eval(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"bad.php": "<?php\neval($x);\n"})
        summary = _engine(plugin, tmp_path / "reports").run()

        assert [f.path for f in summary.section("missing-abspath-guards").findings] == ["bad.php"]
        high_risk = summary.section(HIGH_RISK_CHECK)
        assert [(f.rule, f.path, f.line) for f in high_risk.findings] == [("eval", "bad.php", 2)]
        assert high_risk.severity_label == "Critical"
        assert summary.activation_skipped

        text = (tmp_path / "reports" / "plugin" / config.SUMMARY_FILE).read_text()
        row = next(l for l in text.splitlines() if l.startswith(f"| {HIGH_RISK_CHECK}"))
        assert "Critical" in row
        assert "Activation tests skipped: yes" in text

    def test_latin1_file_with_eval_skips_activation(self, wp_site, tmp_path):
        make_tree(wp_site, {"main.php": b"<?php\n// Autor: Jos\xe9\neval($_GET['x']);\n"})
        runner = FakeRunner()
        summary = _engine(wp_site, tmp_path / "reports", "full", runner, wp=True).run()

        high_risk = summary.section(HIGH_RISK_CHECK)
        assert high_risk.count == 1
        assert summary.activation_skipped
        assert runner.wp_calls("plugin", "activate") == []
        artifact = tmp_path / "reports" / "demo-plugin" / high_risk.artifact
        assert "main.php:3:" in artifact.read_text()

    def test_unreadable_file_closes_activation_gate(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"a.php": GUARD, "b.php": GUARD})

        def read(candidate):
            if candidate.relpath == "a.php":
                raise PermissionError("Permission denied")
            return candidate.path.read_text()

        with patch("wpqa.engine.read_source", side_effect=read):
            summary = _engine(plugin, tmp_path / "reports").run()

        high_risk = summary.section(HIGH_RISK_CHECK)
        assert high_risk.count == 0
        assert high_risk.skipped == ["a.php: Permission denied"]
        assert summary.activation_skipped
        assert summary.skip_reason == "high-risk scan incomplete, files could not be read"

        report_dir = tmp_path / "reports" / "plugin"
        assert "Files not scanned:" in (report_dir / high_risk.artifact).read_text()
        text = (report_dir / config.SUMMARY_FILE).read_text()
        assert "FILES NOT SCANNED" in text
        assert f"{HIGH_RISK_CHECK}: 1 file(s), see {high_risk.artifact}" in text

    def test_vendor_code_is_ignored(self, tmp_path):
        plugin = make_tree(
            tmp_path / "plugin",
            {"plugin.php": GUARD, "vendor/legacy.php": "<?php\nexec($cmd);\n"},
        )
        summary = _engine(plugin, tmp_path / "reports").run()
        assert summary.section(HIGH_RISK_CHECK).count == 0
        assert summary.section("missing-abspath-guards").count == 0
        assert summary.statistics.php_files == 1
        assert not summary.activation_skipped

    def test_exec_in_readme_not_flagged(self, tmp_path):
        plugin = make_tree(
            tmp_path / "plugin",
            {"plugin.php": GUARD, "readme.txt": "exec('rm -rf /');\n"},
        )
        summary = _engine(plugin, tmp_path / "reports").run()
        assert summary.section(HIGH_RISK_CHECK).count == 0

    def test_empty_plugin(self, tmp_path):
        plugin = tmp_path / "empty-plugin"
        plugin.mkdir()
        summary = _engine(plugin, tmp_path / "reports").run()
        assert summary.statistics.php_files == 0
        assert summary.statistics.php_lines == 0
        assert summary.total_findings == 0
        assert all(s.count == 0 and not s.failed for s in summary.sections)
        report_dir = tmp_path / "reports" / "empty-plugin"
        assert (report_dir / config.SUMMARY_FILE).is_file()
        assert "None found" in (report_dir / "01-missing-abspath-guards.txt").read_text()

    def test_sections_follow_profile_order(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"plugin.php": GUARD})
        summary = _engine(plugin, tmp_path / "reports").run()
        assert [s.name for s in summary.sections] == list(get_profile("security").checks)
        assert summary.sections[0].artifact == "01-missing-abspath-guards.txt"

    def test_uninstall_preview(self, tmp_path):
        plugin = make_tree(
            tmp_path / "plugin",
            {"plugin.php": GUARD, "uninstall.php": "<?php\ndelete_option('demo');\n"},
        )
        summary = _engine(plugin, tmp_path / "reports").run()
        notes = summary.section("uninstall-safety").notes
        assert notes[0] == "uninstall.php found"
        assert "delete_option('demo');" in notes

    def test_missing_uninstall(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"plugin.php": GUARD})
        summary = _engine(plugin, tmp_path / "reports").run()
        assert "NOT found" in summary.section("uninstall-safety").notes[0]


# ─── Report Stability ────────────────────────────────────────────────


class TestReportStability:
    def test_rerun_is_identical(self, tmp_path):
        plugin = make_tree(
            tmp_path / "plugin",
            {
                "plugin.php": GUARD + "echo $_GET['x'];\n$wpdb->query($sql);\n",
                "inc/a.php": "<?php\nunserialize($v);\n",
            },
        )
        report_dir = tmp_path / "reports" / "plugin"
        _engine(plugin, tmp_path / "reports").run()
        first = _artifacts(report_dir)
        _engine(plugin, tmp_path / "reports").run()
        assert _artifacts(report_dir) == first

    def test_stale_artifacts_removed(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"plugin.php": GUARD})
        report_dir = tmp_path / "reports" / "plugin"
        report_dir.mkdir(parents=True)
        (report_dir / "99-obsolete.txt").write_text("old")
        _engine(plugin, tmp_path / "reports", "minimal").run()
        assert not (report_dir / "99-obsolete.txt").exists()


# ─── External Tools ──────────────────────────────────────────────────


class TestToolSteps:
    def test_minimal_profile(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"plugin.php": GUARD})
        runner = FakeRunner()
        summary = _engine(plugin, tmp_path / "reports", "minimal", runner).run()
        assert [s.name for s in summary.sections] == [
            "missing-abspath-guards",
            COMPATIBILITY,
            WPCS,
        ]
        compat = summary.section(COMPATIBILITY)
        assert compat.raw_output == "phpcs: no violations\n"
        assert compat.title.endswith(f"[PHP {config.PHP_VERSION}]")
        assert "testVersion" in runner.commands[0]

    def test_tool_failure_is_isolated(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"plugin.php": "<?php\n"})
        summary = _engine(plugin, tmp_path / "reports", "minimal", FailingPhpcs()).run()
        assert summary.section(COMPATIBILITY).failed
        assert summary.section(WPCS).failed
        assert summary.section("missing-abspath-guards").count == 1
        assert not summary.all_failed
        text = (tmp_path / "reports" / "plugin" / config.SUMMARY_FILE).read_text()
        assert "CHECK FAILURES" in text
        assert "not found on PATH" in text

    def test_lint_failures(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"plugin.php": GUARD, "broken.php": GUARD + "if ("})
        runner = FakeRunner()
        runner.lint_failures = {"broken.php"}
        summary = _engine(plugin, tmp_path / "reports", "full", runner).run()
        lint = summary.section(LINT)
        assert [f.render() for f in lint.findings] == ["broken.php: syntax error"]
        assert summary.probe is None

    def test_lint_timeout_keeps_other_files(self, tmp_path):
        plugin = make_tree(
            tmp_path / "plugin",
            {"broken.php": GUARD + "if (", "plugin.php": GUARD, "slow.php": GUARD},
        )
        runner = SlowLintRunner()
        runner.lint_failures = {"broken.php"}
        summary = _engine(plugin, tmp_path / "reports", "full", runner).run()
        lint = summary.section(LINT)
        assert not lint.failed
        assert [f.path for f in lint.findings] == ["broken.php"]
        assert lint.skipped == ["slow.php: 'php' timed out after 5s"]


# ─── Activation Probe ────────────────────────────────────────────────


class TestActivation:
    def test_precondition_fails_before_reports(self, wp_site, tmp_path):
        make_tree(wp_site, {"demo-plugin.php": GUARD})
        engine = _engine(wp_site, tmp_path / "reports", "full", FakeRunner(installed=False), wp=True)
        with pytest.raises(PreconditionError, match="WordPress not detected"):
            engine.run()
        assert not (tmp_path / "reports").exists()

    def test_clean_plugin_probe(self, wp_site, tmp_path):
        make_tree(wp_site, {"demo-plugin.php": GUARD + "add_action('init', 'demo_init');\n"})
        runner = FakeRunner(active=False)
        summary = _engine(wp_site, tmp_path / "reports", "full", runner, wp=True).run()

        assert summary.probe is not None and summary.probe.passed
        section = summary.sections[-1]
        assert section.name == ACTIVATION
        assert section.exit_code == 0
        assert section.artifact == f"{len(summary.sections):02d}-activation.txt"
        assert runner.active is False
        assert runner.wp_calls("plugin", "activate")

        report_dir = tmp_path / "reports" / "demo-plugin"
        assert "Result: passed" in (report_dir / config.SUMMARY_FILE).read_text()
        assert "activate: ok" in (report_dir / section.artifact).read_text()

    def test_failed_restore_is_fatal(self, wp_site, tmp_path):
        make_tree(wp_site, {"demo-plugin.php": GUARD})
        runner = FakeRunner(active=True)
        runner.fail_activate = True
        engine = _engine(wp_site, tmp_path / "reports", "full", runner, wp=True)
        with pytest.raises(ActivationStateError):
            engine.run()
        text = (tmp_path / "reports" / "demo-plugin" / config.SUMMARY_FILE).read_text()
        assert "activation: Could not restore plugin 'demo-plugin' to active" in text

    def test_busy_lock_recorded_as_failure(self, wp_site, tmp_path):
        make_tree(wp_site, {"demo-plugin.php": GUARD})
        engine = _engine(wp_site, tmp_path / "reports", "full", FakeRunner(), wp=True)
        with probe_lock(detect_wp_root(resolve_target(wp_site))):
            summary = engine.run()
        assert summary.section(ACTIVATION).failed
        assert summary.probe is None


# ─── Interruption ────────────────────────────────────────────────────


class TestCancel:
    def test_cancel_skips_remaining_steps(self, tmp_path):
        plugin = make_tree(tmp_path / "plugin", {"plugin.php": "<?php\neval($x);\n"})
        holder = {}

        def progress(msg):
            if msg == "Missing ABSPATH/WPINC Guards":
                holder["engine"].cancel()

        engine = _engine(plugin, tmp_path / "reports", progress=progress)
        holder["engine"] = engine
        summary = engine.run()

        assert summary.interrupted
        assert summary.sections[0].count == 1
        skipped = summary.sections[1:]
        assert skipped and all(s.error == SKIPPED for s in skipped)
        # an unfinished high-risk scan still keeps the plugin from running
        assert summary.skip_reason == "high-risk scan did not complete"
        text = (tmp_path / "reports" / "plugin" / config.SUMMARY_FILE).read_text()
        assert "RUN INTERRUPTED" in text

