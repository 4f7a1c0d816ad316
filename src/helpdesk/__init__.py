"""HR helpdesk ticket lifecycle and assignment engine."""

__version__ = "0.1.0"
