"""Surveyor command line interface."""
