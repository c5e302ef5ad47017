"""Wagerfeed: bet feed aggregation, change notification and bet lifecycle service."""

__version__ = "0.1.0"
__author__ = "Wagerfeed Team"

__all__ = ["__version__", "__author__"]
