"""Runtime configuration."""

from helpdesk.config.settings import Settings  # noqa: F401
