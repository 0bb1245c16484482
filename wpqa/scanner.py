"""Rule scanner: applies rules to file candidates and produces findings."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from wpqa.models import ABSENCE, FileCandidate, Finding
from wpqa.rules import Check, Rule

logger = logging.getLogger("wpqa.scanner")

ABSENCE_TEXT = "no direct access guard found"


def read_source(candidate: FileCandidate) -> str:
    """Return the text of *candidate*.

    Bytes that are not valid UTF-8 are replaced with U+FFFD. Raises OSError
    when the file cannot be read at all.
    """
    data = candidate.path.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("%s is not valid UTF-8, scanning with replacement characters", candidate.relpath)
        return data.decode("utf-8", errors="replace")


def scan_text(rule: Rule, relpath: str, content: str) -> list[Finding]:
    """Apply *rule* to already-read *content*."""
    if rule.kind == ABSENCE:
        if any(s in content for s in rule.substrings):
            return []
        return [Finding(rule=rule.name, path=relpath, line=None, text=ABSENCE_TEXT)]

    regex = rule.regex
    exclude = rule.exclude_regex
    findings: list[Finding] = []
    for line_no, line in enumerate(content.splitlines(), start=1):
        if not regex.search(line):
            continue
        if exclude is not None and exclude.search(line):
            continue
        findings.append(Finding(rule=rule.name, path=relpath, line=line_no, text=line.strip()))
    return findings


def scan_file(
    candidate: FileCandidate,
    rule: Rule,
    source_extensions: tuple[str, ...] = (".php",),
) -> list[Finding]:
    """Apply a single rule to a single file."""
    if not rule.applies_to(candidate.extension, source_extensions):
        return []
    try:
        content = read_source(candidate)
    except OSError as e:
        logger.warning("Skipping %s: %s", candidate.relpath, e)
        return []
    return scan_text(rule, candidate.relpath, content)


def scan_check(
    check: Check,
    candidates: Iterable[FileCandidate],
    source_extensions: tuple[str, ...] = (".php",),
    reader: Callable[[FileCandidate], str] = read_source,
    skipped: list[str] | None = None,
) -> list[Finding]:
    """Run every rule of *check* over *candidates*.

    Findings are ordered by rule (table order), then file, then line. Each
    file is read at most once per call; pass a caching *reader* to share
    reads across checks. Files the reader cannot open are logged and, when
    *skipped* is given, appended to it as ``"relpath: error"``.
    """
    per_rule: dict[str, list[Finding]] = {r.name: [] for r in check.rules}
    for candidate in candidates:
        rules = [r for r in check.rules if r.applies_to(candidate.extension, source_extensions)]
        if not rules:
            continue
        try:
            content = reader(candidate)
        except OSError as e:
            logger.warning("Skipping %s: %s", candidate.relpath, e)
            if skipped is not None:
                skipped.append(f"{candidate.relpath}: {e}")
            continue
        for rule in rules:
            per_rule[rule.name].extend(scan_text(rule, candidate.relpath, content))
    return [f for r in check.rules for f in per_rule[r.name]]
