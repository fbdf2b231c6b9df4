"""Locally persisted state shared across screens."""

from .favorites import FavoritesStore, Subscription
from .preferences import DeviceIdProvider, LanguagePreference

__all__ = ["FavoritesStore", "Subscription", "DeviceIdProvider", "LanguagePreference"]
