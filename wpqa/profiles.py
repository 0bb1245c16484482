"""Run profiles: which checks and tools each CLI variant enables."""

from __future__ import annotations

from dataclasses import dataclass

from wpqa.walker import DEFAULT_EXCLUSIONS

# External tool steps
COMPATIBILITY = "php-compatibility"
WPCS = "wpcs"
LINT = "php-lint"

TOOL_TITLES = {
    COMPATIBILITY: "PHP Compatibility (phpcs PHPCompatibility)",
    WPCS: "WordPress Coding Standards (phpcs WordPress)",
    LINT: "PHP Syntax Lint",
}


@dataclass(frozen=True)
class Profile:
    name: str
    description: str
    checks: tuple[str, ...]
    tools: tuple[str, ...] = ()
    report_dirname: str = "qa-reports"
    exclusions: frozenset[str] = DEFAULT_EXCLUSIONS
    source_extensions: tuple[str, ...] = (".php",)
    activation: bool = False
    debug_activation: bool = False

    def exclusion_set(self, extra: tuple[str, ...] = ()) -> frozenset[str]:
        return self.exclusions | {self.report_dirname} | set(extra)


PROFILES: dict[str, Profile] = {
    "full": Profile(
        name="full",
        description="Guards, phpcs, syntax lint, pattern scans and WP-CLI activation probe",
        checks=(
            "missing-abspath-guards",
            "uninstall-safety",
            "ajax-handlers",
            "public-ajax",
            "rest-routes",
            "nonces",
            "capability-checks",
            "sql-injection",
            "db-prepared",
            "file-operations",
            "remote-requests",
            "i18n-missing-textdomain",
            "i18n-loader",
            "high-risk-functions",
        ),
        tools=(COMPATIBILITY, WPCS, LINT),
        activation=True,
        debug_activation=True,
    ),
    "minimal": Profile(
        name="minimal",
        description="Guards and phpcs only",
        checks=("missing-abspath-guards",),
        tools=(COMPATIBILITY, WPCS),
    ),
    "security": Profile(
        name="security",
        description="Security pattern analysis, no external tools",
        checks=(
            "missing-abspath-guards",
            "high-risk-functions",
            "sql-injection",
            "db-prepared",
            "unescaped-output",
            "phpcs-ignore",
            "escaping",
            "user-input",
            "sanitization",
            "ajax-handlers",
            "public-ajax",
            "rest-routes",
            "nonces",
            "capability-checks",
            "deprecated-functions",
            "object-injection",
            "safe-unserialize",
            "hardcoded-credentials",
            "file-operations",
            "remote-requests",
            "uninstall-safety",
        ),
        report_dirname="security-reports",
    ),
}


def get_profile(name: str) -> Profile:
    try:
        return PROFILES[name]
    except KeyError:
        raise KeyError(f"Unknown profile: {name}") from None
