"""Access control and audit core for a multi-tenant school platform."""

__version__ = "0.1.0"
