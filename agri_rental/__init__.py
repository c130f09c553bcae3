"""Farm equipment rental scheduling API."""

__version__ = "1.0.0"
