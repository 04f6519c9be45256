"""
Exceptions raised by the Insider Agent package.
"""


class InsiderAgentError(Exception):
    """Base class for all Insider Agent errors."""


class ConfigError(InsiderAgentError):
    """Raised when settings or configuration values are invalid."""
