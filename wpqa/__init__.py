"""
WPQA: QA and security sweep for WordPress plugin source trees.

Walks a plugin directory, runs static pattern checks, wraps phpcs / php -l /
WP-CLI, and writes plain-text reports.
"""

__version__ = "1.0.0"

from wpqa.engine import QAEngine, RunContext

__all__ = ["QAEngine", "RunContext", "__version__"]
