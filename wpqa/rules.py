"""Static rule table for the wpqa pattern checks.

Checks are keyed by name and shared by every profile. A profile only decides
which of them run.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from wpqa.models import ABSENCE, CALL, CRITICAL, INFO, LINE, REVIEW


@dataclass(frozen=True)
class Rule:
    """A named pattern with an applicability filter."""
    name: str
    kind: str
    pattern: str = ""
    substrings: tuple[str, ...] = ()
    extensions: tuple[str, ...] | None = None  # None: profile source extensions
    ignore_case: bool = False
    exclude: str | None = None  # lines matching this are dropped

    @property
    def regex(self) -> re.Pattern[str]:
        return _compile(self.kind, self.pattern, self.ignore_case)

    @property
    def exclude_regex(self) -> re.Pattern[str] | None:
        if self.exclude is None:
            return None
        return _compile(LINE, self.exclude, self.ignore_case)

    def applies_to(self, extension: str, default: tuple[str, ...]) -> bool:
        allowed = self.extensions if self.extensions is not None else default
        return extension in allowed


@dataclass(frozen=True)
class Check:
    """A group of rules reported together in one artifact."""
    name: str
    title: str
    severity: str
    rules: tuple[Rule, ...] = field(default_factory=tuple)
    description: str = ""


_CACHE: dict[tuple[str, str, bool], re.Pattern[str]] = {}


def _compile(kind: str, pattern: str, ignore_case: bool) -> re.Pattern[str]:
    key = (kind, pattern, ignore_case)
    if key not in _CACHE:
        flags = re.IGNORECASE if ignore_case else 0
        if kind == CALL:
            # not a method call, not part of a longer identifier or a variable
            source = r"(?<![\w$])(?<!->)(?<!::)" + re.escape(pattern) + r"\s*\("
        else:
            source = pattern
        _CACHE[key] = re.compile(source, flags)
    return _CACHE[key]


def literal(name: str, text: str, **kwargs) -> Rule:
    """Line rule matching *text* verbatim."""
    return Rule(name=name, kind=LINE, pattern=re.escape(text), **kwargs)


def call(name: str, function: str | None = None, **kwargs) -> Rule:
    """Function-signature rule matching ``function(``."""
    return Rule(name=name, kind=CALL, pattern=function or name, **kwargs)


# ─── Guard strings ────────────────────────────────────────────────────

GUARD_STRINGS = (
    "defined( 'ABSPATH' )",
    'defined("ABSPATH")',
    "defined('ABSPATH')",
    "WPINC",
)

HIGH_RISK_FUNCTIONS = (
    "eval",
    "exec",
    "shell_exec",
    "passthru",
    "system",
    "popen",
    "proc_open",
    "base64_decode",
)

# Hosts whose URLs are expected in plugin code
URL_ALLOWLIST = (
    r"wordpress\.org",
    r"w3\.org",
    r"schema\.org",
    r"openweathermap\.org",
    r"weatherapi\.com",
)

HIGH_RISK_CHECK = "high-risk-functions"

# ─── Checks ───────────────────────────────────────────────────────────

_CHECKS = (
    Check(
        "missing-abspath-guards",
        "Missing ABSPATH/WPINC Guards",
        REVIEW,
        (Rule("abspath-guard", ABSENCE, substrings=GUARD_STRINGS),),
        "Files without direct access protection",
    ),
    Check(
        HIGH_RISK_CHECK,
        "High-Risk Functions Scan",
        CRITICAL,
        tuple(
            call(fn, extensions=(".php",)) if fn == "exec" else call(fn)
            for fn in HIGH_RISK_FUNCTIONS
        ),
        "Scanning for: " + ", ".join(HIGH_RISK_FUNCTIONS),
    ),
    Check(
        "sql-injection",
        "SQL Injection Vulnerability Scan",
        REVIEW,
        (
            literal("wpdb-query", "$wpdb->query("),
            Rule(
                "wpdb-get",
                LINE,
                r"\$wpdb->get_",
                exclude=r"get_blog_prefix|get_charset_collate",
            ),
        ),
        "Direct $wpdb queries (potential SQL injection)",
    ),
    Check(
        "db-prepared",
        "Prepared Queries",
        INFO,
        (literal("wpdb-prepare", "$wpdb->prepare"),),
        "$wpdb->prepare() usage",
    ),
    Check(
        "unescaped-output",
        "XSS Vulnerability Scan",
        REVIEW,
        (literal("echo-variable", "echo $"),),
        "Unescaped echo statements (potential XSS)",
    ),
    Check(
        "phpcs-ignore",
        "phpcs:ignore Comments",
        REVIEW,
        (literal("phpcs-ignore", "phpcs:ignore"),),
        "Bypassed coding standard checks",
    ),
    Check(
        "escaping",
        "Escaping Function Usage",
        INFO,
        (
            literal("esc_html", "esc_html("),
            literal("esc_attr", "esc_attr("),
            literal("esc_url", "esc_url("),
            literal("wp_kses", "wp_kses"),
        ),
    ),
    Check(
        "user-input",
        "User Input Handling Scan",
        REVIEW,
        (
            literal("$_GET", "$_GET["),
            literal("$_POST", "$_POST["),
            literal("$_REQUEST", "$_REQUEST["),
        ),
        "Direct superglobal access",
    ),
    Check(
        "sanitization",
        "Sanitization Function Usage",
        INFO,
        (
            literal("sanitize_text_field", "sanitize_text_field("),
            literal("sanitize_email", "sanitize_email("),
            literal("absint", "absint("),
            literal("wp_unslash", "wp_unslash("),
        ),
    ),
    Check(
        "ajax-handlers",
        "AJAX Handlers (authenticated)",
        INFO,
        (Rule("wp_ajax", LINE, r"add_action.*wp_ajax_[^n]"),),
    ),
    Check(
        "public-ajax",
        "Public AJAX Handlers",
        REVIEW,
        (literal("wp_ajax_nopriv", "wp_ajax_nopriv_"),),
        "wp_ajax_nopriv_ handlers (PUBLIC - verify security!)",
    ),
    Check(
        "rest-routes",
        "REST API Routes",
        INFO,
        (literal("register_rest_route", "register_rest_route"),),
    ),
    Check(
        "nonces",
        "Nonce Verification",
        INFO,
        (
            literal("wp_verify_nonce", "wp_verify_nonce"),
            literal("check_admin_referer", "check_admin_referer"),
            literal("check_ajax_referer", "check_ajax_referer"),
        ),
    ),
    Check(
        "capability-checks",
        "Capability Checks",
        INFO,
        (literal("current_user_can", "current_user_can("),),
    ),
    Check(
        "deprecated-functions",
        "Deprecated Functions Scan",
        REVIEW,
        (
            literal("FILTER_SANITIZE_STRING", "FILTER_SANITIZE_STRING"),
            Rule("mysql_*", LINE, r"\bmysql_\w+\s*\("),
            call("ereg"),
            call("create_function"),
        ),
        "Functions deprecated or removed in PHP 7.2+ / 8.1+",
    ),
    Check(
        "object-injection",
        "Object Injection Vulnerability Scan",
        CRITICAL,
        (call("unserialize"),),
        "unserialize() usage (potential object injection)",
    ),
    Check(
        "safe-unserialize",
        "maybe_unserialize() Usage",
        INFO,
        (call("maybe_unserialize"),),
    ),
    Check(
        "hardcoded-credentials",
        "Hardcoded Credentials Scan",
        CRITICAL,
        (
            Rule(
                "secret-assignment",
                LINE,
                r"(api[_-]?key|secret[_-]?key|password|token|auth)\s*[=:>]\s*['\"][a-zA-Z0-9]",
                ignore_case=True,
            ),
            Rule(
                "secret-define",
                LINE,
                r"define\s*\(\s*['\"][^'\"]*?(KEY|SECRET|TOKEN|PASSWORD)",
                ignore_case=True,
            ),
        ),
        "Potential API keys/secrets",
    ),
    Check(
        "file-operations",
        "File Operations Scan",
        REVIEW,
        (
            call("file_put_contents"),
            call("file_get_contents"),
            call("fopen"),
            call("fwrite"),
        ),
    ),
    Check(
        "remote-requests",
        "Remote HTTP Requests Scan",
        INFO,
        (
            literal("wp_remote", "wp_remote_"),
            Rule("curl", LINE, r"\bcurl_\w+\s*\("),
            Rule("remote-url", LINE, r"https?://[^'\"\s]+", exclude="|".join(URL_ALLOWLIST)),
        ),
    ),
    Check(
        "i18n-missing-textdomain",
        "i18n Calls Without Textdomain",
        REVIEW,
        (
            Rule(
                "missing-textdomain",
                LINE,
                r"\b(__|_e|esc_html__|esc_attr__)\s*\(\s*['\"][^'\"]+['\"]\s*\)",
            ),
        ),
    ),
    Check(
        "i18n-loader",
        "Textdomain Loader",
        INFO,
        (literal("load_plugin_textdomain", "load_plugin_textdomain"),),
    ),
    Check(
        "uninstall-safety",
        "Uninstall Safety Check",
        INFO,
        (literal("register_uninstall_hook", "register_uninstall_hook"),),
    ),
)

CHECKS: dict[str, Check] = {c.name: c for c in _CHECKS}

# Fixed recommendation lines, emitted when the keyed check has findings
RECOMMENDATIONS: dict[str, str] = {
    HIGH_RISK_CHECK: "CRITICAL: Review high-risk function usage",
    "object-injection": "CRITICAL: Replace unserialize() with maybe_unserialize()",
    "hardcoded-credentials": "CRITICAL: Move hardcoded credentials to wp-config.php or options",
    "deprecated-functions": "MEDIUM: Update deprecated functions for PHP 8.x compatibility",
    "missing-abspath-guards": "MEDIUM: Add ABSPATH checks to all PHP files",
    "public-ajax": "REVIEW: Verify public AJAX handlers have proper security",
    "sql-injection": "REVIEW: Ensure all DB queries use $wpdb->prepare()",
    "unescaped-output": "REVIEW: Escape output with esc_html()/esc_attr()/wp_kses()",
    "phpcs-ignore": "REVIEW: Justify or remove phpcs:ignore comments",
    "user-input": "REVIEW: Sanitize superglobal input with sanitize_*() and wp_unslash()",
    "i18n-missing-textdomain": "REVIEW: Pass the plugin textdomain to translation functions",
    "php-lint": "CRITICAL: Fix PHP syntax errors before release",
}


def get_check(name: str) -> Check:
    try:
        return CHECKS[name]
    except KeyError:
        raise KeyError(f"Unknown check: {name}") from None
