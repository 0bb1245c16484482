"""External tool bridge: phpcs, php -l and WP-CLI.

Tools are treated as opaque. Only exit status and captured text are used.
A non-zero exit means "completed with findings"; timeouts and missing
binaries raise CheckFailure.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Iterable, Sequence
from pathlib import Path

from wpqa import config
from wpqa.errors import CheckFailure
from wpqa.models import FileCandidate, ToolResult

logger = logging.getLogger("wpqa.bridge")

WPCS_EXCLUDED_SNIFFS = (
    "WordPress.WP.I18n",
    "WordPress.NamingConventions.PrefixAllGlobals",
    "WordPress.Files.FileName",
    "WordPress.Classes.ClassFileName",
)


class ToolRunner:
    """Runs a command with a timeout and captures its output."""

    def __init__(self, timeout: int = config.TOOL_TIMEOUT):
        self.timeout = timeout

    def run(self, cmd: Sequence[str], cwd: str | Path | None = None) -> ToolResult:
        logger.debug("Running: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                list(cmd),
                capture_output=True,
                text=True,
                check=False,
                cwd=str(cwd) if cwd else None,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise CheckFailure(f"'{cmd[0]}' timed out after {self.timeout}s") from exc
        except FileNotFoundError as exc:
            raise CheckFailure(f"'{cmd[0]}' not found on PATH") from exc
        except OSError as exc:
            raise CheckFailure(f"'{cmd[0]}' failed to start: {exc}") from exc
        return ToolResult(
            command=tuple(cmd),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )


def ignore_patterns(exclusions: Iterable[str]) -> str:
    """phpcs ``--ignore`` value for a set of directory names."""
    return ",".join(f"*/{d}/*" for d in sorted(exclusions))


class CodingStandards:
    """phpcs invocations."""

    def __init__(self, runner: ToolRunner | None = None, binary: str = config.PHPCS_BIN):
        self.runner = runner or ToolRunner()
        self.binary = binary

    def run(
        self,
        root: Path,
        standard: str,
        exclusions: Iterable[str],
        exclude_sniffs: Iterable[str] = (),
        php_version: str | None = None,
    ) -> ToolResult:
        cmd = [self.binary, str(root), f"--standard={standard}"]
        if php_version:
            cmd += ["--runtime-set", "testVersion", php_version]
        cmd += ["--extensions=php", f"--ignore={ignore_patterns(exclusions)}"]
        sniffs = list(exclude_sniffs)
        if sniffs:
            cmd.append(f"--exclude={','.join(sniffs)}")
        cmd.append("--report=full")
        return self.runner.run(cmd)

    def compatibility(self, root: Path, exclusions: Iterable[str], php_version: str) -> ToolResult:
        return self.run(root, "PHPCompatibility", exclusions, php_version=php_version)

    def wordpress(self, root: Path, exclusions: Iterable[str]) -> ToolResult:
        return self.run(root, "WordPress", exclusions, exclude_sniffs=WPCS_EXCLUDED_SNIFFS)


class SyntaxChecker:
    """``php -l`` per file."""

    def __init__(self, runner: ToolRunner | None = None, binary: str = config.PHP_BIN):
        self.runner = runner or ToolRunner()
        self.binary = binary

    def run(self, candidates: Iterable[FileCandidate]) -> tuple[list[str], list[str], int]:
        """Return ``(failing_files, unchecked, exit_code)``.

        A file whose ``php -l`` run times out or cannot start is listed in
        *unchecked* as ``"relpath: error"`` and the loop moves on. Raises
        CheckFailure only when no file could be checked at all. The exit code
        is 1 if any file failed or went unchecked.
        """
        failing: list[str] = []
        unchecked: list[str] = []
        last_error: CheckFailure | None = None
        checked = 0
        for c in candidates:
            try:
                result = self.runner.run([self.binary, "-d", "detect_unicode=0", "-l", str(c.path)])
            except CheckFailure as e:
                logger.warning("php -l skipped %s: %s", c.relpath, e)
                unchecked.append(f"{c.relpath}: {e}")
                last_error = e
                continue
            checked += 1
            if not result.ok:
                logger.debug("Syntax error in %s: %s", c.relpath, result.output.strip())
                failing.append(c.relpath)
        if last_error is not None and checked == 0:
            raise last_error
        return failing, unchecked, 1 if failing or unchecked else 0


class WPCli:
    """Narrow WP-CLI surface used by the activation probe."""

    def __init__(
        self,
        wp_root: Path,
        runner: ToolRunner | None = None,
        binary: str = config.WP_BIN,
    ):
        self.wp_root = Path(wp_root)
        self.runner = runner or ToolRunner()
        self.binary = binary

    def _wp(self, *args: str) -> ToolResult:
        return self.runner.run([self.binary, f"--path={self.wp_root}", *args])

    def is_installed(self) -> bool:
        try:
            return self._wp("core", "is-installed", "--quiet").ok
        except CheckFailure as e:
            logger.warning("WP-CLI unavailable: %s", e)
            return False

    def is_active(self, slug: str) -> bool:
        return self._wp("plugin", "is-active", slug).ok

    def set_active(self, slug: str, active: bool, quiet: bool = False) -> ToolResult:
        action = "activate" if active else "deactivate"
        args = ["plugin", action, slug]
        if quiet:
            args.append("--quiet")
        return self._wp(*args)

    def set_config(self, name: str, value: str) -> ToolResult:
        return self._wp("config", "set", name, value, "--raw", "--quiet")
