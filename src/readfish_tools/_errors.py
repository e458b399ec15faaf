class ConfigurationError(ValueError):
    """Raised when options can not work together, before any output exists."""


class MalformedRecordError(ValueError):
    """Raised when an input file violates the framing of its format."""
