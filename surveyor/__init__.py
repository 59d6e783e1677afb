"""Surveyor - asset discovery engine with pluggable data source connectors."""

__version__ = "0.1.0"
