"""beesync - push activity from external services into Beeminder goals."""

__version__ = "0.3.0"
