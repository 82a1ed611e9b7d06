"""Dependency vulnerability monitor built on npm audit."""

__version__ = "0.1.0"
