"""sidekick: a coding agent that delegates sub-tasks to nested agent sessions."""

__version__ = "0.1.0"
