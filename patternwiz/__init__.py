"""Static project analysis: technologies, patterns, gaps, and quality."""

__version__ = "0.3.0"
