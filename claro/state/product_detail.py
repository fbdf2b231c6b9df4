"""Product detail view state: product bundle, reviews, votes and translations."""

import asyncio
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..client import CatalogApi
from ..config import StateConfig, state_config
from ..errors import error_message
from ..models import (
    CreateReviewRequest,
    HelpfulVote,
    PageEnvelope,
    ProductDetail,
    Review,
    ReviewSummary,
)
from ..storage import DeviceIdProvider, FavoritesStore
from .base import StateMachine
from .pagination import (
    merge_unique_by_id,
    page_has_more,
    patch_helpful_count,
    resolved_page_number,
)

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
REVIEW_SORT_BY = "helpfulCount"
REVIEW_SORT_DIR = "DESC"
SOURCE_LANG = "en"


class DetailViewState(BaseModel):
    """Snapshot rendered by the product detail screen."""

    model_config = ConfigDict(frozen=True)

    product_id: Optional[int] = None
    is_loading: bool = False
    error: Optional[str] = None
    product: Optional[ProductDetail] = None
    review_summary: Optional[ReviewSummary] = None
    review_summary_source: Optional[str] = None
    is_favorite: bool = False
    reviews: list[Review] = Field(default_factory=list)
    reviews_error: Optional[str] = None
    reviews_page: int = 0
    reviews_has_more: bool = True
    is_loading_reviews: bool = False
    # Set while reviews/product hold the local estimate made after a submission
    reviews_provisional: bool = False
    translated_description: Optional[str] = None
    translated_comments_by_id: dict[int, str] = Field(default_factory=dict)
    is_submitting_review: bool = False

    def display_description(self) -> Optional[str]:
        """Description to render, translated when an overlay exists."""
        if self.translated_description is not None:
            return self.translated_description
        return self.product.description if self.product else None

    def display_comment(self, review: Review) -> Optional[str]:
        """Comment to render for review, translated when an overlay exists."""
        return self.translated_comments_by_id.get(review.id, review.comment)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


class ProductDetailStateMachine(StateMachine[DetailViewState]):
    """
    Loads one product's detail bundle and keeps its review list current.

    The initial load is all-or-nothing; later operations (review pages,
    votes, translations) fail independently without discarding the product.
    """

    def __init__(
        self,
        api: CatalogApi,
        favorites: FavoritesStore,
        device_ids: DeviceIdProvider,
        settings: Optional[StateConfig] = None,
        lang: Optional[str] = None,
    ):
        super().__init__(DetailViewState())
        self.api = api
        self.favorites = favorites
        self.device_ids = device_ids
        self.settings = settings or state_config
        self.lang = lang or self.settings.default_lang
        # Bumped whenever the review list is replaced, so older page merges are dropped
        self._reviews_generation = 0

    async def start(self) -> None:
        """Follow favorite changes made from other screens."""
        self._subscriptions.append(self.favorites.subscribe(self._on_favorites_changed))

    def _on_favorites_changed(self, ids: frozenset) -> None:
        state = self.state
        if state.product is None:
            return
        is_favorite = state.product_id in ids
        if is_favorite != state.is_favorite:
            self._update(is_favorite=is_favorite)

    async def load(self, product_id: int) -> None:
        """
        Load product, review summary and first review page concurrently.

        Nothing is published until all three succeed; any failure fails the
        whole load. Results of a load superseded by a later one are dropped.
        """
        generation = self._next_generation()
        self._reviews_generation += 1
        self._publish(DetailViewState(product_id=product_id, is_loading=True))

        tasks = [
            asyncio.ensure_future(self.api.fetch_product_by_id(product_id)),
            asyncio.ensure_future(
                self.api.fetch_review_summary(
                    product_id, self.settings.summary_limit, self.lang
                )
            ),
            asyncio.ensure_future(self._fetch_reviews(product_id, 0)),
        ]

        try:
            product, summary, first_page = await asyncio.gather(*tasks)
        except Exception as e:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if self._is_current(generation):
                logger.warning("Loading product %s failed: %s", product_id, e)
                self._publish(DetailViewState(product_id=product_id, error=error_message(e)))
            return

        if not self._is_current(generation):
            logger.debug("Dropping superseded load of product %s", product_id)
            return

        self._update(
            is_loading=False,
            error=None,
            product=product,
            review_summary=summary,
            review_summary_source=summary.source,
            is_favorite=self.favorites.contains(product_id),
            reviews=list(first_page.content),
            reviews_page=resolved_page_number(first_page, 0),
            reviews_has_more=page_has_more(first_page),
            reviews_error=None,
            is_loading_reviews=False,
        )

        await self._translate_overlay(generation)

    async def set_lang(self, lang: str) -> None:
        """Switch the display language and rebuild the translation overlay."""
        self.lang = lang
        await self._translate_overlay(self._generation)

    async def load_more_reviews(self) -> None:
        """Merge the next review page, skipping ids already listed."""
        state = self.state
        if state.product is None or state.product_id is None:
            return
        if state.is_loading or state.is_loading_reviews or not state.reviews_has_more:
            return

        await self._load_reviews(state.product_id, state.reviews_page + 1, append=True)

    async def refresh_reviews(self) -> None:
        """Replace the review list with page 0 from the server."""
        state = self.state
        if state.product_id is None:
            return
        await self._load_reviews(state.product_id, 0, append=False)

    async def toggle_favorite(self, product_id: int) -> None:
        try:
            ids = await self.favorites.toggle(product_id)
        except Exception as e:
            logger.warning("Toggling favorite %s failed: %s", product_id, e)
            return

        if self.state.product_id == product_id:
            self._update(is_favorite=product_id in ids)

    async def toggle_helpful(self, review_id: int) -> Optional[HelpfulVote]:
        """Toggle this device's vote and patch only that review's count."""
        try:
            device_id = await self.device_ids.get_or_create()
            vote = await self.api.toggle_helpful(review_id, device_id)
        except Exception as e:
            logger.warning("Helpful vote on review %s failed: %s", review_id, e)
            return None

        if any(review.id == vote.review_id for review in self.state.reviews):
            self._update(reviews=patch_helpful_count(self.state.reviews, vote))
        return vote

    async def submit_review(
        self,
        product_id: int,
        reviewer_name: Optional[str],
        rating: int,
        comment: Optional[str],
    ) -> Optional[Review]:
        """
        Submit a review and show it immediately.

        The new review is prepended and the product's count and average are
        estimated locally; a delayed reload of review page 0 then replaces
        the estimate with the server's list.

        Returns:
            The created review, or None when rejected or failed
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            self._update(error=f"Rating must be between {MIN_RATING} and {MAX_RATING}")
            return None

        generation = self._generation
        self._update(is_submitting_review=True, error=None)

        def still_current() -> bool:
            return self._is_current(generation) and self.state.product_id == product_id

        try:
            device_id = await self.device_ids.get_or_create()
            request = CreateReviewRequest(
                product_id=product_id,
                comment=_blank_to_none(comment),
                rating=rating,
                reviewer_name=_blank_to_none(reviewer_name),
                device_id=device_id,
            )
            review = await self.api.submit_review(request)
        except Exception as e:
            logger.warning("Submitting review for product %s failed: %s", product_id, e)
            if still_current():
                self._update(error=f"Failed to add review: {error_message(e)}")
            return None
        else:
            if still_current():
                self._apply_submitted_review(review)
                self._spawn(self._reconcile_reviews(generation))
            return review
        finally:
            # A newer load has already published a fresh snapshot
            if still_current():
                self._update(is_submitting_review=False)

    def _apply_submitted_review(self, review: Review) -> None:
        state = self.state
        if state.product is None:
            return

        reviews = [review, *state.reviews]
        ratings = [r.rating for r in reviews if r.rating is not None]
        # Mean of the locally known ratings only; replaced by the reconcile reload
        average = sum(ratings) / len(ratings) if ratings else state.product.average_rating
        product = state.product.model_copy(
            update={
                "review_count": (state.product.review_count or 0) + 1,
                "average_rating": average,
            }
        )

        self._update(
            product=product,
            reviews=reviews,
            reviews_page=0,
            reviews_has_more=True,
            reviews_provisional=True,
        )

    async def _reconcile_reviews(self, generation: int) -> None:
        await asyncio.sleep(self.settings.review_refresh_delay)
        if not self._is_current(generation):
            return
        await self.refresh_reviews()

    async def _fetch_reviews(self, product_id: int, page: int) -> PageEnvelope[Review]:
        return await self.api.fetch_reviews(
            product_id=product_id,
            page=page,
            size=self.settings.reviews_page_size,
            sort_by=REVIEW_SORT_BY,
            sort_dir=REVIEW_SORT_DIR,
        )

    async def _load_reviews(self, product_id: int, page: int, append: bool) -> None:
        generation = self._generation
        if not append:
            self._reviews_generation += 1
        reviews_generation = self._reviews_generation

        if append:
            self._update(is_loading_reviews=True)
        else:
            self._update(is_loading_reviews=True, reviews_error=None)

        def still_current() -> bool:
            return (
                self._is_current(generation)
                and reviews_generation == self._reviews_generation
            )

        try:
            result = await self._fetch_reviews(product_id, page)
        except Exception as e:
            if still_current():
                logger.warning("Loading reviews page %d failed: %s", page, e)
                self._update(
                    is_loading_reviews=False,
                    reviews_error=f"Failed to load reviews: {error_message(e)}",
                )
            return

        if not still_current():
            logger.debug("Dropping stale reviews page %d of product %s", page, product_id)
            return

        if append:
            reviews = merge_unique_by_id(self.state.reviews, result.content)
            has_more = page_has_more(result, require_content=True)
        else:
            reviews = list(result.content)
            has_more = page_has_more(result)

        self._update(
            reviews=reviews,
            reviews_page=resolved_page_number(result, page),
            reviews_has_more=has_more,
            is_loading_reviews=False,
            reviews_error=None,
            reviews_provisional=False,
        )

    async def _translate_overlay(self, generation: int) -> None:
        """
        Translate description and comments to the active language.

        English or blank clears the overlay. Otherwise one ordered batch is
        sent (description first, then non-blank comments in list order) and
        applied only if the response has exactly as many entries. Any earlier
        overlay is cleared first, so a failed switch shows the source text.
        """
        target = self.lang.strip().lower()
        if not target or target == SOURCE_LANG:
            self._clear_overlay()
            return

        self._clear_overlay()
        state = self.state
        description = ((state.product.description if state.product else None) or "").strip()
        comments = [
            (review.id, (review.comment or "").strip())
            for review in state.reviews
            if (review.comment or "").strip()
        ]

        texts = [description] if description else []
        texts.extend(text for _, text in comments)
        if not texts:
            return

        try:
            translations = await self.api.translate_batch(target, texts)
        except Exception as e:
            logger.warning("Translation to %s failed: %s", target, e)
            return

        if not self._is_current(generation) or self.lang.strip().lower() != target:
            logger.debug("Dropping translation to %s for a superseded view", target)
            return

        if len(translations) != len(texts):
            logger.warning(
                "Discarding translation to %s: sent %d texts, got %d back",
                target,
                len(texts),
                len(translations),
            )
            return

        def or_source(translated: Optional[str], source: str) -> str:
            return translated if translated and translated.strip() else source

        remaining = iter(translations)
        translated_description = None
        if description:
            translated_description = or_source(next(remaining), description)

        translated_comments = {
            review_id: or_source(translated, original)
            for (review_id, original), translated in zip(comments, remaining)
        }

        self._update(
            translated_description=translated_description,
            translated_comments_by_id=translated_comments,
        )

    def _clear_overlay(self) -> None:
        state = self.state
        if state.translated_description is None and not state.translated_comments_by_id:
            return
        self._update(translated_description=None, translated_comments_by_id={})
