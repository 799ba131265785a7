"""loadwatch - live dashboard and summary for distributed load-test runs."""

__version__ = "0.1.0"

__all__ = ["__version__"]
