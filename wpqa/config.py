"""
WPQA configuration.
Shared settings read from the environment once at import.
"""

import os
import tempfile
from pathlib import Path

# Report Output
REPORT_DIR = os.environ.get("WPQA_REPORT_DIR", "")
SUMMARY_FILE = "00-SUMMARY.txt"
STATISTICS_FILE = "00-statistics.txt"

# PHP Compatibility
PHP_VERSION = os.environ.get("WPQA_PHP_VERSION", "7.4")

# External Tools
TOOL_TIMEOUT = int(os.environ.get("WPQA_TOOL_TIMEOUT", "120"))
PHPCS_BIN = os.environ.get("WPQA_PHPCS", "phpcs")
PHP_BIN = os.environ.get("WPQA_PHP", "php")
WP_BIN = os.environ.get("WPQA_WP", "wp")

# Activation Probe
# <wp-root>/wp-content/plugins/<slug>
WP_ROOT_DEPTH = 3
LOCK_DIR = Path(os.environ.get("WPQA_LOCK_DIR", tempfile.gettempdir()))
