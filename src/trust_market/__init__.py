"""Market snapshot and Trust-Market overlay engine."""

__version__ = "0.1.0"
