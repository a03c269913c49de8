"""git-auto-updater: keep a command running from an auto-updating git checkout."""

__version__ = "0.3.0"
