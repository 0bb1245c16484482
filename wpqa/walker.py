"""Directory walker with exclusion pruning."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path, PurePosixPath

from wpqa.models import FileCandidate

logger = logging.getLogger("wpqa.walker")

# Never scanned, whatever the profile
DOC_EXTENSIONS = frozenset({".md", ".txt", ".rst"})

DEFAULT_EXCLUSIONS = frozenset(
    {
        "node_modules",
        ".git",
        ".github",
        "vendor",
        "tests",
        "dist",
        "build",
    }
)


def is_excluded(relpath: str | PurePosixPath, exclusions: Iterable[str]) -> bool:
    """True if any segment of *relpath* is an excluded directory name."""
    excluded = set(exclusions)
    return any(part in excluded for part in PurePosixPath(relpath).parts)


def walk(
    root: Path,
    exclusions: Iterable[str] = DEFAULT_EXCLUSIONS,
    extensions: Iterable[str] | None = None,
) -> Iterator[FileCandidate]:
    """Yield files under *root* in sorted order.

    Excluded directories are pruned before descent. Directory symlinks are
    followed once; a directory already visited through another path is skipped.
    """
    root = Path(root)
    excluded = frozenset(exclusions)
    wanted = frozenset(extensions) if extensions is not None else None
    seen: set[str] = set()

    def _on_error(exc: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", exc.filename, exc.strerror)

    for dirpath, dirs, files in os.walk(root, followlinks=True, onerror=_on_error):
        real = os.path.realpath(dirpath)
        if real in seen:
            logger.warning("Symlink loop detected, skipping %s", dirpath)
            dirs[:] = []
            continue
        seen.add(real)

        rel_dir = PurePosixPath(Path(dirpath).relative_to(root).as_posix())
        dirs[:] = sorted(d for d in dirs if d not in excluded)
        if is_excluded(rel_dir, excluded):
            dirs[:] = []
            continue

        for f in sorted(files):
            fp = Path(dirpath) / f
            ext = fp.suffix.lower()
            if ext in DOC_EXTENSIONS:
                continue
            if wanted is not None and ext not in wanted:
                continue
            relpath = (rel_dir / f).as_posix()
            yield FileCandidate(path=fp, relpath=relpath, extension=ext)


def count_lines(candidates: Iterable[FileCandidate]) -> tuple[int, int]:
    """Return ``(files, lines)`` for *candidates*; unreadable files count as 0 lines."""
    files = 0
    lines = 0
    for c in candidates:
        files += 1
        try:
            with c.path.open("rb") as fh:
                lines += sum(1 for _ in fh)
        except OSError as e:
            logger.warning("Cannot read %s: %s", c.relpath, e)
    return files, lines
