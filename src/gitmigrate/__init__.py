"""GitMigrate - git origin for source migrations."""

__version__ = "0.3.0"
