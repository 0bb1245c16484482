"""
WPQA command-line interface.

Commands:
    wpqa full       Guards, phpcs, syntax lint, pattern scans, activation probe
    wpqa minimal    Guards and phpcs only
    wpqa security   Security pattern analysis
    wpqa rules      List the checks a profile runs
    wpqa version    Show version
"""

from __future__ import annotations

import contextlib
import logging
import signal
import sys
from collections.abc import Iterator
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from wpqa import __version__, config
from wpqa.engine import QAEngine, RunContext
from wpqa.errors import ActivationStateError, PathNotFoundError, PreconditionError
from wpqa.models import CRITICAL, INFO, RunSummary, ScanTarget
from wpqa.paths import detect_wp_root, report_dir_for, resolve_target
from wpqa.profiles import PROFILES, TOOL_TITLES, Profile, get_profile
from wpqa.rules import CHECKS

console = Console()

SEVERITY_STYLES = {"OK": "green", "Info": "cyan", "Review": "yellow", "Critical": "bold red", "Error": "red"}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


class QAGroup(click.Group):
    """Click group whose usage errors exit with status 1."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as exc:
            exc.exit_code = 1
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except click.UsageError as exc:
            exc.exit_code = 1
            raise


# ─── Click Group ────────────────────────────────────────────────────────


@click.group(cls=QAGroup)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """WPQA: WordPress plugin QA and security sweep."""
    setup_logging(verbose)


# ─── Helpers ────────────────────────────────────────────────────────────


def _report_base(profile: Profile, report_dir: str | None) -> Path:
    if report_dir:
        return Path(report_dir).expanduser().resolve()
    if config.REPORT_DIR:
        return Path(config.REPORT_DIR).expanduser().resolve()
    return Path.cwd() / profile.report_dirname


def _exclusions(profile: Profile, target: ScanTarget, base: Path) -> frozenset[str]:
    extra: tuple[str, ...] = ()
    with contextlib.suppress(ValueError):
        rel = base.relative_to(target.root)
        if rel.parts:
            extra = (rel.parts[0],)
    return profile.exclusion_set(extra)


@contextlib.contextmanager
def _interruptible(engine: QAEngine) -> Iterator[None]:
    """Route SIGINT/SIGTERM to ``engine.cancel`` for the duration of a run."""

    def _handle_signal(signum: int, frame: object) -> None:
        console.print(f"\n[yellow]Received {signal.Signals(signum).name}, finishing current check...[/]")
        engine.cancel()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handle_signal)
        except ValueError:
            # not in the main thread
            pass
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _print_header(ctx: RunContext) -> None:
    console.print(
        Panel(
            f"[bold]WordPress Plugin QA[/] ({ctx.profile.name})\n"
            f"Plugin: [cyan]{ctx.target.name}[/]\n"
            f"Plugin root: {ctx.target.root}\n"
            f"Reports: {ctx.report_dir}",
            border_style="cyan",
        )
    )


def _print_summary(summary: RunSummary, report_dir: Path) -> None:
    table = Table(title=f"QA Summary: {summary.target.name}", show_header=True, header_style="bold")
    table.add_column("Check", style="bold")
    table.add_column("Count", justify="right")
    table.add_column("Severity")
    table.add_column("Report", style="dim")
    for s in summary.sections:
        count = "-" if s.failed or s.is_tool_output else str(s.count)
        label = s.severity_label
        style = SEVERITY_STYLES.get(label, "white")
        table.add_row(s.name, count, f"[{style}]{label}[/]", s.artifact)
    console.print(table)
    console.print(
        f"\n  PHP files: {summary.statistics.php_files} | "
        f"Lines: {summary.statistics.php_lines:,} | "
        f"Findings: {summary.total_findings}"
    )
    if summary.activation_skipped:
        console.print(f"  [bold red]Activation tests skipped: {summary.skip_reason}[/]")
    elif summary.probe is not None:
        if summary.probe.passed:
            console.print("  [green]Plugin activation/deactivation check passed[/]")
        else:
            console.print("  [red]Plugin activation/deactivation check FAILED[/]")
    if summary.interrupted:
        console.print("  [yellow]Run interrupted: reports are partial[/]")
    console.print(f"\n  Reports: {report_dir}")
    console.print(f"  Quick view: cat {report_dir / config.SUMMARY_FILE}")


def _run(
    profile_name: str,
    plugin_path: str,
    report_dir: str | None,
    php_version: str = config.PHP_VERSION,
    wp_path: str | None = None,
    activation: bool = True,
) -> None:
    profile = get_profile(profile_name)
    try:
        target = resolve_target(plugin_path)
    except PathNotFoundError as e:
        console.print(f"[red]Error: {e}[/]")
        sys.exit(1)

    base = _report_base(profile, report_dir)
    wp_root = detect_wp_root(target, wp_path) if profile.activation and activation else None
    ctx = RunContext(
        target=target,
        profile=profile,
        report_dir=report_dir_for(target, base),
        exclusions=_exclusions(profile, target, base),
        php_version=php_version,
        wp_root=wp_root,
    )
    engine = QAEngine(ctx, progress=lambda msg: console.print(f"[bold blue]>[/] {msg}"))
    _print_header(ctx)

    try:
        with _interruptible(engine):
            summary = engine.run()
    except PreconditionError as e:
        console.print(f"[red]Error: {e}[/]")
        sys.exit(1)
    except ActivationStateError as e:
        console.print(f"[bold red]Plugin state could not be restored: {e}[/]")
        sys.exit(1)

    _print_summary(summary, ctx.report_dir)
    if summary.all_failed:
        console.print("[red]Every check failed.[/]")
        sys.exit(1)
    if summary.interrupted:
        sys.exit(1)


# ─── Commands ───────────────────────────────────────────────────────────


@cli.command()
@click.argument("plugin_path")
@click.option(
    "--php-version",
    default=config.PHP_VERSION,
    show_default=True,
    help="testVersion for the PHPCompatibility check",
)
@click.option("--report-dir", default=None, help="Report base directory (default: ./qa-reports)")
@click.option("--wp-path", default=None, help="WordPress root (default: three levels above the plugin)")
@click.option("--no-activation", is_flag=True, help="Skip the WP-CLI activation probe")
def full(plugin_path, php_version, report_dir, wp_path, no_activation):
    """Full QA: guards, phpcs, syntax lint, pattern scans, activation probe."""
    _run("full", plugin_path, report_dir, php_version, wp_path, activation=not no_activation)


@cli.command()
@click.argument("plugin_path")
@click.option(
    "--php-version",
    default=config.PHP_VERSION,
    show_default=True,
    help="testVersion for the PHPCompatibility check",
)
@click.option("--report-dir", default=None, help="Report base directory (default: ./qa-reports)")
def minimal(plugin_path, php_version, report_dir):
    """Guards and phpcs (PHPCompatibility + WordPress) only."""
    _run("minimal", plugin_path, report_dir, php_version)


@cli.command()
@click.argument("plugin_path")
@click.option(
    "--report-dir", default=None, help="Report base directory (default: ./security-reports)"
)
def security(plugin_path, report_dir):
    """Security pattern analysis, no external tools."""
    _run("security", plugin_path, report_dir)


@cli.command("rules")
@click.option(
    "--profile",
    "profile_name",
    type=click.Choice(sorted(PROFILES)),
    default="security",
    show_default=True,
)
def rules_cmd(profile_name):
    """List the checks a profile runs."""
    profile = get_profile(profile_name)
    table = Table(title=f"Profile: {profile.name}", show_header=True, header_style="bold")
    table.add_column("Check", style="cyan")
    table.add_column("Severity")
    table.add_column("Rules")
    for name in profile.checks:
        check = CHECKS[name]
        style = "bold red" if check.severity == CRITICAL else "dim" if check.severity == INFO else "yellow"
        table.add_row(name, f"[{style}]{check.severity}[/]", ", ".join(r.name for r in check.rules))
    for tool in profile.tools:
        table.add_row(tool, "tool", TOOL_TITLES[tool])
    console.print(table)
    console.print(f"  [dim]{profile.description}[/]")


@cli.command()
def version() -> None:
    """Show wpqa version."""
    console.print(f"[bold cyan]wpqa[/] v{__version__}")


if __name__ == "__main__":
    cli()
