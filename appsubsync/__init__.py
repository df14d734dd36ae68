"""Synchronize subscription-delivered resource templates with a cluster through supplied clients."""

__version__ = "0.0.1"