"""Connectors for third-party lookup APIs."""

from surveyor.plugins.api.domains_project import DomainsProjectPlugin

__all__ = ["DomainsProjectPlugin"]
