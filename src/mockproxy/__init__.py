"""File-backed mock server with proxy fallback and response recording."""

__version__ = "0.1.0"
