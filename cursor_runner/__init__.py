"""Bounded-concurrency runner for an external coding-assistant CLI."""

__version__ = "0.1.0"
