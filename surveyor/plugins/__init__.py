"""Plugin engine - data source connectors and their registry."""

from surveyor.plugins.base import (
    Handler,
    InvalidAssetKind,
    PluginError,
    PluginResult,
    RateLimit,
    SurveyorPlugin,
)
from surveyor.plugins.registry import PluginRegistry

__all__ = [
    "SurveyorPlugin",
    "PluginResult",
    "PluginError",
    "InvalidAssetKind",
    "Handler",
    "RateLimit",
    "PluginRegistry",
]
