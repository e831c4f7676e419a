"""applists — reconcile installed packages and apps against plain-text want lists."""

__version__ = "0.3.0"
