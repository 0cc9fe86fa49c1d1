"""Personal to-do service with AI task extraction and productivity summaries."""

__version__ = "0.3.0"
