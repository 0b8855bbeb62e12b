"""CloudMusic - provider synchronization and token lifecycle engine."""

__version__ = "0.1.0"
