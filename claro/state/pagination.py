"""Page continuation and merge rules shared by the paginated views."""

from typing import Iterable, TypeVar

from ..models import HelpfulVote, PageEnvelope, Review

T = TypeVar("T")


def page_has_more(page: PageEnvelope, require_content: bool = False) -> bool:
    """
    Whether another page may be requested after this one.

    Only an explicit last=False continues; a missing flag counts as the end.
    With require_content, an empty page also ends the listing whatever the
    server reports.
    """
    if page.last is not False:
        return False
    if require_content and not page.content:
        return False
    return True


def resolved_page_number(page: PageEnvelope, requested: int) -> int:
    """Server-reported page index, or the requested one when omitted."""
    return page.number if page.number is not None else requested


def append_page(items: list[T], page: PageEnvelope) -> list[T]:
    """Concatenate a page onto items verbatim, duplicates included."""
    return [*items, *page.content]


def merge_unique_by_id(items: Iterable[T], incoming: Iterable[T]) -> list[T]:
    """Concatenate, keeping only the first occurrence of each id."""
    seen = set()
    merged = []
    for item in [*items, *incoming]:
        if item.id in seen:
            continue
        seen.add(item.id)
        merged.append(item)
    return merged


def patch_helpful_count(reviews: list[Review], vote: HelpfulVote) -> list[Review]:
    """Replace the helpful count of the voted review, leaving order and others intact."""
    return [
        review.model_copy(update={"helpful_count": vote.helpful_count})
        if review.id == vote.review_id
        else review
        for review in reviews
    ]
