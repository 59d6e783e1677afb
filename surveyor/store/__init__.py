"""Persistence layer for discovered assets."""

from surveyor.store.asset_store import AssetStore

__all__ = ["AssetStore"]
