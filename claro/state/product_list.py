"""Product list view state: server query or favorites-only listing."""

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..client import CatalogApi
from ..config import StateConfig, state_config
from ..errors import PartialBatchFailure, error_message
from ..models import PageEnvelope, ProductSummary
from ..storage import FavoritesStore
from .base import StateMachine
from .pagination import append_page, page_has_more, resolved_page_number

logger = logging.getLogger(__name__)

DEFAULT_SORT_BY = "reviewCount"
DEFAULT_SORT_DIR = "DESC"

# Free-text spellings of the server's multi-word categories
CATEGORY_SYNONYMS = {
    "electronics": "ELECTRONICS",
    "clothing": "CLOTHING",
    "books": "BOOKS",
    "home & kitchen": "HOME & KITCHEN",
    "home and kitchen": "HOME & KITCHEN",
    "homekitchen": "HOME & KITCHEN",
    "sports & outdoors": "SPORTS & OUTDOORS",
    "sports and outdoors": "SPORTS & OUTDOORS",
    "sportsoutdoors": "SPORTS & OUTDOORS",
}


def normalize_category(category: Optional[str]) -> Optional[str]:
    """
    Map a free-text category to the server's canonical token.

    Used both for the server query parameter and for filtering the
    favorites listing, so both modes agree on the same input.

    Returns:
        Canonical uppercase token, or None for a blank input
    """
    raw = (category or "").strip()
    if not raw:
        return None

    canonical = CATEGORY_SYNONYMS.get(raw.lower())
    if canonical:
        return canonical

    # All-caps input is already canonical; upper() leaves it unchanged
    return raw.upper()


def parse_decimal(value: Optional[str]) -> Optional[Decimal]:
    """Parse a decimal string, None when blank or malformed."""
    text = (value or "").strip()
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def product_price(product: ProductSummary) -> Decimal:
    price = parse_decimal(product.price)
    return price if price is not None else Decimal(0)


def filter_products(
    products: Iterable[ProductSummary],
    category: Optional[str] = None,
    search: str = "",
    min_rating: Optional[int] = None,
    min_price: str = "",
    max_price: str = "",
) -> list[ProductSummary]:
    """Apply the server's filter semantics to a locally fetched list."""
    filtered = list(products)

    wanted_category = normalize_category(category)
    if wanted_category is not None:
        filtered = [p for p in filtered if normalize_category(p.category) == wanted_category]

    query = search.strip().lower()
    if query:
        filtered = [
            p for p in filtered
            if query in p.name.lower() or query in (p.description or "").lower()
        ]

    if min_rating is not None:
        filtered = [p for p in filtered if (p.average_rating or 0.0) >= min_rating]

    low = parse_decimal(min_price)
    if low is not None:
        filtered = [p for p in filtered if product_price(p) >= low]

    high = parse_decimal(max_price)
    if high is not None:
        filtered = [p for p in filtered if product_price(p) <= high]

    return filtered


def sort_products(
    products: Iterable[ProductSummary],
    sort_by: str = DEFAULT_SORT_BY,
    sort_dir: str = DEFAULT_SORT_DIR,
) -> list[ProductSummary]:
    """Stable sort mirroring the server's ordering; unknown fields sort by review count."""
    if sort_by == "price":
        key = product_price
    elif sort_by == "averageRating":
        key = lambda p: p.average_rating or 0.0
    elif sort_by == "name":
        key = lambda p: p.name
    else:
        key = lambda p: p.review_count or 0

    descending = sort_dir.strip().upper() != "ASC"
    # sorted() stays stable with reverse=True, ties keep encounter order
    return sorted(products, key=key, reverse=descending)


class ListViewState(BaseModel):
    """Snapshot rendered by the product list screen."""

    model_config = ConfigDict(frozen=True)

    items: list[ProductSummary] = Field(default_factory=list)
    favorite_ids: frozenset[int] = frozenset()
    show_favorites: bool = False
    page: int = 0
    has_more: bool = True
    is_loading: bool = False
    error: Optional[str] = None
    search: str = ""
    selected_category: Optional[str] = None
    sort_by: str = DEFAULT_SORT_BY
    sort_dir: str = DEFAULT_SORT_DIR
    min_rating: Optional[int] = None
    min_price: str = ""
    max_price: str = ""

    def is_favorite(self, product_id: int) -> bool:
        return product_id in self.favorite_ids


class ProductListStateMachine(StateMachine[ListViewState]):
    """Search, filter, sort and paginate products, or list favorites only."""

    def __init__(
        self,
        api: CatalogApi,
        favorites: FavoritesStore,
        settings: Optional[StateConfig] = None,
    ):
        super().__init__(ListViewState())
        self.api = api
        self.favorites = favorites
        self.settings = settings or state_config
        self._search_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Follow the favorites store and load the first page."""
        self._subscriptions.append(self.favorites.subscribe(self._on_favorites_changed))
        self._update(favorite_ids=self.favorites.snapshot())
        await self.refresh()

    def _on_favorites_changed(self, ids: frozenset) -> None:
        self._update(favorite_ids=ids)
        if self.state.show_favorites:
            self._spawn(self.refresh())

    async def refresh(self) -> None:
        """Reload from page 0 with the current filters, replacing items."""
        generation = self._next_generation()
        current = self._update(
            is_loading=True,
            error=None,
            page=0,
            has_more=not self.state.show_favorites,
        )

        try:
            if current.show_favorites:
                items = await self._load_favorite_products(current)
                page, has_more = 0, False
            else:
                result = await self._fetch_page(current, 0)
                items = list(result.content)
                page = resolved_page_number(result, 0)
                has_more = page_has_more(result)
        except Exception as e:
            if self._is_current(generation):
                logger.warning("Product refresh failed: %s", e)
                self._update(is_loading=False, error=error_message(e))
            return

        if not self._is_current(generation):
            logger.debug("Dropping superseded product refresh")
            return

        self._update(
            is_loading=False,
            items=items,
            page=page,
            has_more=has_more,
            error=None,
        )

    async def load_more(self) -> None:
        """Append the next server page; no-op in favorites mode, while loading or at the end."""
        current = self.state
        if current.show_favorites or current.is_loading or not current.has_more:
            return

        generation = self._generation
        next_page = current.page + 1
        self._update(is_loading=True, error=None)

        try:
            result = await self._fetch_page(current, next_page)
        except Exception as e:
            if self._is_current(generation):
                logger.warning("Loading product page %d failed: %s", next_page, e)
                self._update(is_loading=False, error=error_message(e))
            return

        if not self._is_current(generation):
            logger.debug("Dropping product page %d from superseded query", next_page)
            return

        self._update(
            is_loading=False,
            items=append_page(self.state.items, result),
            page=resolved_page_number(result, next_page),
            has_more=page_has_more(result),
            error=None,
        )

    def set_search(self, text: str) -> None:
        """Show the new text at once and refresh after the debounce delay."""
        self._update(search=text)

        if self._search_task is not None:
            self._search_task.cancel()

        delay = self.settings.search_debounce if text.strip() else 0
        self._search_task = self._spawn(self._debounced_refresh(delay))

    async def _debounced_refresh(self, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        # Later keystrokes cancel only the wait, never a refresh already under way
        self._spawn(self.refresh())

    async def set_show_favorites(self, show: bool) -> None:
        self._update(show_favorites=show, page=0, has_more=not show)
        await self.refresh()

    async def apply_filters(
        self,
        selected_category: Optional[str],
        sort_by: str,
        sort_dir: str,
        min_rating: Optional[int],
        min_price: str,
        max_price: str,
    ) -> None:
        self._update(
            selected_category=selected_category,
            sort_by=sort_by,
            sort_dir=sort_dir,
            min_rating=min_rating,
            min_price=min_price,
            max_price=max_price,
            page=0,
            has_more=not self.state.show_favorites,
        )
        await self.refresh()

    async def toggle_favorite(self, product_id: int) -> None:
        """Delegate to the favorites store; its broadcast updates favorite_ids."""
        try:
            await self.favorites.toggle(product_id)
        except Exception as e:
            logger.warning("Toggling favorite %s failed: %s", product_id, e)
            self._update(error=f"Failed to update favorites: {error_message(e)}")

    async def _fetch_page(self, query: ListViewState, page: int) -> PageEnvelope[ProductSummary]:
        return await self.api.fetch_products(
            page=page,
            size=self.settings.page_size,
            sort_by=query.sort_by,
            sort_dir=query.sort_dir,
            category=normalize_category(query.selected_category),
            search=query.search.strip() or None,
            min_rating=query.min_rating,
            min_price=query.min_price.strip() or None,
            max_price=query.max_price.strip() or None,
        )

    async def _load_favorite_products(self, query: ListViewState) -> list[ProductSummary]:
        """Fetch every favorite individually, then filter and sort client-side."""
        ids = sorted(query.favorite_ids)
        if not ids:
            return []

        products = []
        failed = []
        batch_size = self.settings.concurrent_requests

        for i in range(0, len(ids), batch_size):
            batch = ids[i : i + batch_size]
            results = await asyncio.gather(
                *[self.api.fetch_product_by_id(product_id) for product_id in batch],
                return_exceptions=True,
            )
            for product_id, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.debug("Favorite %s unavailable: %s", product_id, result)
                    failed.append(product_id)
                else:
                    products.append(result.to_summary())

        if failed:
            logger.warning("%s", PartialBatchFailure(failed, total=len(ids)))

        filtered = filter_products(
            products,
            category=query.selected_category,
            search=query.search,
            min_rating=query.min_rating,
            min_price=query.min_price,
            max_price=query.max_price,
        )
        return sort_products(filtered, query.sort_by, query.sort_dir)
