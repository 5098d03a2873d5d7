"""Real-time exercise pose classification, rep counting and form feedback."""

__version__ = "1.0.0"
