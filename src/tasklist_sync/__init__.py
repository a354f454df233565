"""Personal task-list client: remote task sync, filtering and email-verified sessions."""

__version__ = "0.1.0"
