"""Editor agent: compile-status server hosted in a long-lived editor, and the `check` client that polls it."""

__version__ = "0.1.0"
