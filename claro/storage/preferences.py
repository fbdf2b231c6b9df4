"""Per-installation preferences: device id and display language."""

import asyncio
import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from ..config import state_config
from ..database import PreferenceORM, get_session

logger = logging.getLogger(__name__)


class PreferenceStore:
    """String key/value preferences, persisted when an engine is given."""

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self.engine = engine
        self._memory: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        if self.engine is None:
            return self._memory.get(key)

        async with get_session(self.engine) as session:
            result = await session.execute(
                select(PreferenceORM).where(PreferenceORM.key == key)
            )
            pref = result.scalar_one_or_none()
            return pref.value if pref else None

    async def set(self, key: str, value: str) -> None:
        if self.engine is None:
            self._memory[key] = value
            return

        async with get_session(self.engine) as session:
            await session.merge(PreferenceORM(key=key, value=value))


class DeviceIdProvider:
    """Stable per-installation identifier used for helpful votes and reviews."""

    KEY = "device_id"

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self._prefs = PreferenceStore(engine)
        self._lock = asyncio.Lock()
        self._cached: Optional[str] = None

    async def get_or_create(self) -> str:
        """Return the stored device id, creating and persisting one on first use."""
        async with self._lock:
            if self._cached:
                return self._cached

            existing = await self._prefs.get(self.KEY)
            if existing and existing.strip():
                self._cached = existing
                return existing

            created = str(uuid4())
            await self._prefs.set(self.KEY, created)
            logger.info("Created device id %s", created)
            self._cached = created
            return created


class LanguagePreference:
    """Display language chosen by the user."""

    KEY = "lang"

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self._prefs = PreferenceStore(engine)

    async def get(self) -> str:
        value = await self._prefs.get(self.KEY)
        return value or state_config.default_lang

    async def set(self, lang: str) -> None:
        await self._prefs.set(self.KEY, lang.strip().lower())
