"""journaltail — exactly-once events from a growing JSON-lines journal."""

__version__ = "0.1.0"
