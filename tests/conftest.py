from __future__ import annotations

from pathlib import Path

import pytest

from wpqa import config
from wpqa.bridge import ToolRunner
from wpqa.models import ToolResult

GUARD = "<?php\ndefined( 'ABSPATH' ) || exit;\n"


def make_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Create *files* (relative path → content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


class FakeRunner(ToolRunner):
    """ToolRunner that simulates phpcs, php -l and a WordPress site."""

    def __init__(self, active: bool = False, installed: bool = True):
        super().__init__(timeout=5)
        self.active = active
        self.installed = installed
        self.commands: list[tuple[str, ...]] = []
        self.config: dict[str, str] = {}
        self.fail_activate = False
        self.lint_failures: set[str] = set()
        self.fail_config: set[str] = set()  # constants whose `config set` exits 1

    def wp_calls(self, *words: str) -> list[tuple[str, ...]]:
        return [
            c for c in self.commands
            if len(c) > 2 and c[1].startswith("--path=") and c[2 : 2 + len(words)] == words
        ]

    def run(self, cmd, cwd=None) -> ToolResult:
        cmd = tuple(cmd)
        self.commands.append(cmd)
        if any(arg.startswith("--standard=") for arg in cmd):
            return ToolResult(cmd, 0, "phpcs: no violations\n")
        if "-l" in cmd:
            path = cmd[-1]
            if any(path.endswith(f) for f in self.lint_failures):
                return ToolResult(cmd, 255, "PHP Parse error: syntax error\n")
            return ToolResult(cmd, 0, f"No syntax errors detected in {path}\n")
        if len(cmd) > 2 and cmd[1].startswith("--path="):
            return self._wp(cmd, cmd[2:])
        return ToolResult(cmd, 127, "", "unknown command\n")

    def _wp(self, cmd, args) -> ToolResult:
        if args[:2] == ("core", "is-installed"):
            return ToolResult(cmd, 0 if self.installed else 1)
        if args[:2] == ("plugin", "is-active"):
            return ToolResult(cmd, 0 if self.active else 1)
        if args[:2] == ("plugin", "activate"):
            if self.fail_activate:
                return ToolResult(cmd, 1, "", "Error: Plugin could not be activated\n")
            self.active = True
            return ToolResult(cmd, 0, f"Plugin '{args[2]}' activated.\n")
        if args[:2] == ("plugin", "deactivate"):
            self.active = False
            return ToolResult(cmd, 0, f"Plugin '{args[2]}' deactivated.\n")
        if args[:2] == ("config", "set"):
            if args[2] in self.fail_config:
                return ToolResult(cmd, 1, "", "Error: wp-config.php is not writable.\n")
            self.config[args[2]] = args[3]
            return ToolResult(cmd, 0)
        return ToolResult(cmd, 1, "", "unsupported\n")


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture(autouse=True)
def isolated_lock_dir(tmp_path_factory, monkeypatch):
    """Keep probe lock files out of the shared temp directory."""
    lock_dir = tmp_path_factory.mktemp("locks")
    monkeypatch.setattr(config, "LOCK_DIR", lock_dir)
    return lock_dir


@pytest.fixture
def wp_site(tmp_path):
    """A fake WordPress layout: <site>/wp-content/plugins/<slug>."""
    plugin = tmp_path / "site" / "wp-content" / "plugins" / "demo-plugin"
    plugin.mkdir(parents=True)
    return plugin
