"""Contexty - reconciling store for captured file context parts."""

__version__ = "0.4.0"
