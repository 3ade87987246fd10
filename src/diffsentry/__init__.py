"""diffsentry: automated review of pull requests and commits."""

__version__ = "0.1.0"
