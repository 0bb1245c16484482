"""
WPQA exceptions.
"""


class QAError(Exception):
    """Base class for every error raised by wpqa."""


class PathNotFoundError(QAError):
    """Plugin directory does not exist or is not a directory."""


class PreconditionError(QAError):
    """Required external environment (WordPress install, WP-CLI) is missing."""


class CheckFailure(QAError):
    """A single check or tool invocation failed. Recorded, never fatal."""


class ActivationStateError(QAError):
    """The plugin could not be restored to its original active state."""
