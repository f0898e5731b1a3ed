"""Command line tooling for Amazon MWAA and its local runner."""

__version__ = "0.1.0"
