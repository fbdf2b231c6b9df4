"""Standalone reviews view state."""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..client import CatalogApi
from ..config import StateConfig, state_config
from ..errors import error_message
from ..models import HelpfulVote, PageEnvelope, Review
from ..storage import DeviceIdProvider
from .base import StateMachine
from .pagination import append_page, page_has_more, patch_helpful_count, resolved_page_number

logger = logging.getLogger(__name__)

REVIEW_SORT_BY = "createdAt"
REVIEW_SORT_DIR = "DESC"


class ReviewsViewState(BaseModel):
    """Snapshot rendered by the all-reviews screen."""

    model_config = ConfigDict(frozen=True)

    product_id: Optional[int] = None
    is_loading: bool = False
    error: Optional[str] = None
    items: list[Review] = Field(default_factory=list)
    page: int = 0
    has_more: bool = True


class ReviewsListStateMachine(StateMachine[ReviewsViewState]):
    """Newest-first review listing for one product."""

    def __init__(
        self,
        api: CatalogApi,
        device_ids: DeviceIdProvider,
        settings: Optional[StateConfig] = None,
    ):
        super().__init__(ReviewsViewState())
        self.api = api
        self.device_ids = device_ids
        self.settings = settings or state_config

    async def load(self, product_id: int) -> None:
        generation = self._next_generation()
        self._publish(ReviewsViewState(product_id=product_id, is_loading=True))

        try:
            result = await self._fetch(product_id, 0)
        except Exception as e:
            if self._is_current(generation):
                logger.warning("Loading reviews of product %s failed: %s", product_id, e)
                self._publish(
                    ReviewsViewState(
                        product_id=product_id,
                        error=error_message(e, "Failed to load reviews"),
                    )
                )
            return

        if not self._is_current(generation):
            return

        self._publish(
            ReviewsViewState(
                product_id=product_id,
                items=list(result.content),
                page=resolved_page_number(result, 0),
                has_more=page_has_more(result),
            )
        )

    async def load_more(self) -> None:
        """Append the next page as received; no-op while loading or at the end."""
        current = self.state
        if current.product_id is None or current.is_loading or not current.has_more:
            return

        generation = self._generation
        next_page = current.page + 1
        self._update(is_loading=True, error=None)

        try:
            result = await self._fetch(current.product_id, next_page)
        except Exception as e:
            if self._is_current(generation):
                logger.warning("Loading reviews page %d failed: %s", next_page, e)
                self._update(
                    is_loading=False,
                    error=error_message(e, "Failed to load reviews"),
                )
            return

        if not self._is_current(generation):
            return

        self._update(
            is_loading=False,
            items=append_page(self.state.items, result),
            page=resolved_page_number(result, next_page),
            has_more=page_has_more(result),
            error=None,
        )

    async def toggle_helpful(self, review_id: int) -> Optional[HelpfulVote]:
        try:
            device_id = await self.device_ids.get_or_create()
            vote = await self.api.toggle_helpful(review_id, device_id)
        except Exception as e:
            logger.warning("Helpful vote on review %s failed: %s", review_id, e)
            return None

        if any(review.id == vote.review_id for review in self.state.items):
            self._update(items=patch_helpful_count(self.state.items, vote))
        return vote

    async def _fetch(self, product_id: int, page: int) -> PageEnvelope[Review]:
        return await self.api.fetch_reviews(
            product_id=product_id,
            page=page,
            size=self.settings.reviews_page_size,
            sort_by=REVIEW_SORT_BY,
            sort_dir=REVIEW_SORT_DIR,
        )
