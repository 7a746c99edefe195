"""Azure operations toolkit for CI workflows."""

__version__ = "0.3.0"
