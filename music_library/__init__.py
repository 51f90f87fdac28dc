"""In-memory music library service."""

__version__ = "1.0.0"
