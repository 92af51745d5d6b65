"""gwipt: automatic work-in-progress commits on a shadow ``wip/`` branch."""

__version__ = "0.3.0"
