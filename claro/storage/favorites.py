"""Favorites store: persisted product ids with change notifications."""

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncEngine

from ..database import FavoriteORM, get_session

logger = logging.getLogger(__name__)

FavoritesListener = Callable[[frozenset], None]


class Subscription:
    """Handle returned by FavoritesStore.subscribe(); cancel() releases it."""

    def __init__(self, store: "FavoritesStore", listener: FavoritesListener):
        self._store = store
        self._listener = listener
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._store._remove_listener(self._listener)


class FavoritesStore:
    """
    Set of favorited product ids, shared by every screen.

    Writes are serialized with a lock and each write broadcasts the new
    snapshot to all subscribers. Without an engine the set lives in memory only.
    """

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self.engine = engine
        self._ids: frozenset = frozenset()
        self._lock = asyncio.Lock()
        self._listeners: list[FavoritesListener] = []

    async def load(self) -> frozenset:
        """Read the persisted ids and broadcast them."""
        if self.engine is not None:
            async with self._lock:
                async with get_session(self.engine) as session:
                    result = await session.execute(select(FavoriteORM.product_id))
                    self._ids = frozenset(result.scalars())
                self._broadcast()
        return self._ids

    def snapshot(self) -> frozenset:
        """Current favorite ids."""
        return self._ids

    def contains(self, product_id: int) -> bool:
        return product_id in self._ids

    async def toggle(self, product_id: int) -> frozenset:
        """Add or remove product_id and return the new snapshot."""
        async with self._lock:
            removing = product_id in self._ids

            if self.engine is not None:
                async with get_session(self.engine) as session:
                    if removing:
                        await session.execute(
                            delete(FavoriteORM).where(FavoriteORM.product_id == product_id)
                        )
                    else:
                        session.add(FavoriteORM(product_id=product_id))

            if removing:
                self._ids = self._ids - {product_id}
            else:
                self._ids = self._ids | {product_id}

            logger.debug(
                "%s favorite %s (%d total)",
                "Removed" if removing else "Added",
                product_id,
                len(self._ids),
            )
            self._broadcast()
            return self._ids

    def subscribe(self, listener: FavoritesListener) -> Subscription:
        """Register listener for every new snapshot."""
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove_listener(self, listener: FavoritesListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _broadcast(self) -> None:
        snapshot = self._ids
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Favorites listener failed")
