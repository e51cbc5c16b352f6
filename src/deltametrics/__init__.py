"""Data-access layer and REST facade for delta telemetry log tables."""

__version__ = "1.0.0"
