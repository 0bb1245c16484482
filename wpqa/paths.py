"""Plugin path resolution."""

from __future__ import annotations

from pathlib import Path

from wpqa import config
from wpqa.errors import PathNotFoundError
from wpqa.models import ScanTarget


def resolve_target(path: str | Path) -> ScanTarget:
    """Resolve a user-supplied plugin directory.

    Relative paths are taken from the current working directory. The plugin
    name (also its WP-CLI slug) is the last path segment.
    """
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise PathNotFoundError(f"Plugin directory not found: {p}")
    if not p.is_dir():
        raise PathNotFoundError(f"Path is not a directory: {p}")
    return ScanTarget(root=p, name=p.name)


def detect_wp_root(target: ScanTarget, override: str | Path | None = None) -> Path:
    """WordPress root for *target*: ``<wp>/wp-content/plugins/<slug>``."""
    if override:
        return Path(override).expanduser().resolve()
    root = target.root
    for _ in range(config.WP_ROOT_DEPTH):
        root = root.parent
    return root


def report_dir_for(target: ScanTarget, base: str | Path) -> Path:
    return Path(base).expanduser().resolve() / target.name
