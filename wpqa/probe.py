"""Plugin activation probe through WP-CLI.

The probe mutates shared site state (the plugin's active flag and the
WP_DEBUG constants), so it runs under an exclusive per-site lock and always
tries to put the plugin back the way it found it.
"""

from __future__ import annotations

import contextlib
import fcntl
import hashlib
import logging
import os
import threading
from collections.abc import Iterator
from pathlib import Path

from wpqa import config
from wpqa.bridge import WPCli
from wpqa.errors import ActivationStateError, CheckFailure
from wpqa.models import ProbeResult

logger = logging.getLogger("wpqa.probe")

DEBUG_FLAGS_ON = (
    ("WP_DEBUG", "true"),
    ("WP_DEBUG_LOG", "true"),
    ("WP_DEBUG_DISPLAY", "false"),
)
DEBUG_FLAGS_OFF = (
    ("WP_DEBUG", "false"),
    ("WP_DEBUG_LOG", "false"),
    ("WP_DEBUG_DISPLAY", "false"),
)

_local_locks: dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


@contextlib.contextmanager
def probe_lock(wp_root: Path, lock_dir: Path | None = None) -> Iterator[Path]:
    """Hold the probe lock for *wp_root* within this process and across processes.

    The cross-process half is an ``flock`` on a file in *lock_dir*; the kernel
    drops it when the holder exits, however it exits. The file itself is left
    in place and holds the last holder's PID.
    """
    key = str(Path(wp_root).resolve())
    with _registry_lock:
        local = _local_locks.setdefault(key, threading.Lock())
    if not local.acquire(blocking=False):
        raise CheckFailure(f"Another activation probe is running against {key}")
    digest = hashlib.sha1(key.encode()).hexdigest()[:12]
    lock_file = Path(lock_dir or config.LOCK_DIR) / f"wpqa-probe-{digest}.lock"
    try:
        fd = os.open(lock_file, os.O_CREAT | os.O_RDWR, 0o644)
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                raise CheckFailure(
                    f"Another activation probe is running against {key} (lock: {lock_file})"
                ) from None
            os.ftruncate(fd, 0)
            os.write(fd, str(os.getpid()).encode())
            try:
                yield lock_file
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
    finally:
        local.release()


class ActivationProbe:
    """probe state → deactivate → activate → deactivate → [debug] → restore."""

    def __init__(self, wp: WPCli, slug: str, debug_test: bool = True):
        self.wp = wp
        self.slug = slug
        self.debug_test = debug_test

    def _toggle(self, result: ProbeResult, active: bool, label: str, quiet: bool = False) -> bool:
        outcome = self.wp.set_active(self.slug, active, quiet=quiet)
        status = "ok" if outcome.ok else f"FAILED (exit {outcome.returncode})"
        result.steps.append(f"{label}: {status}")
        if not outcome.ok:
            detail = outcome.output.strip()
            if detail:
                result.steps.append(f"  {detail}")
            logger.warning("%s %s failed: %s", label, self.slug, detail)
        return outcome.ok

    def _set_flags(self, result: ProbeResult, flags: tuple[tuple[str, str], ...], label: str) -> bool:
        """Apply every flag, recording one step each; True only if all were applied."""
        all_ok = True
        for name, value in flags:
            try:
                outcome = self.wp.set_config(name, value)
            except CheckFailure as e:
                status = f"FAILED ({e})"
                all_ok = False
            else:
                status = "ok" if outcome.ok else f"FAILED (exit {outcome.returncode})"
                all_ok = all_ok and outcome.ok
            result.steps.append(f"{label} {name}={value}: {status}")
            if status != "ok":
                logger.warning("%s %s=%s failed: %s", label, name, value, status)
        return all_ok

    def _debug_activation(self, result: ProbeResult) -> None:
        try:
            if not self._set_flags(result, DEBUG_FLAGS_ON, "set"):
                result.passed = False
                return
            outcome = self.wp.set_active(self.slug, True)
            result.debug_output = outcome.output
            result.steps.append(
                "activate (WP_DEBUG): " + ("ok" if outcome.ok else f"FAILED (exit {outcome.returncode})")
            )
            if not outcome.ok:
                result.passed = False
            self.wp.set_active(self.slug, False, quiet=True)
        finally:
            if not self._set_flags(result, DEBUG_FLAGS_OFF, "reset"):
                result.passed = False

    def _restore(self, result: ProbeResult) -> None:
        state = "active" if result.was_active else "inactive"
        try:
            if self.wp.is_active(self.slug) != result.was_active:
                self.wp.set_active(self.slug, result.was_active, quiet=True)
                restored = self.wp.is_active(self.slug) == result.was_active
            else:
                restored = True
        except CheckFailure as e:
            raise ActivationStateError(f"Could not restore plugin '{self.slug}' to {state}: {e}") from e
        if not restored:
            raise ActivationStateError(f"Could not restore plugin '{self.slug}' to {state}")
        result.steps.append(f"restore original state ({state}): ok")

    def run(self) -> ProbeResult:
        was_active = self.wp.is_active(self.slug)
        result = ProbeResult(passed=True, was_active=was_active)
        result.steps.append(f"initial state: {'active' if was_active else 'inactive'}")
        try:
            passed = (
                self._toggle(result, False, "deactivate", quiet=True)
                and self._toggle(result, True, "activate")
                and self._toggle(result, False, "deactivate")
            )
            result.passed = passed
            if passed and self.debug_test:
                self._debug_activation(result)
        finally:
            self._restore(result)
        logger.info("Activation probe for %s: %s", self.slug, "passed" if result.passed else "failed")
        return result
