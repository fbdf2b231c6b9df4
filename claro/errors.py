"""Error taxonomy for catalog operations."""

from typing import Iterable, Optional


class CatalogError(Exception):
    """Base error for catalog and review operations."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NetworkFailure(CatalogError):
    """Transport failure or timeout."""


class ValidationError(CatalogError):
    """Input rejected by the client or the server."""


class NotFound(CatalogError):
    """Unknown product or review id."""


class PartialBatchFailure(CatalogError):
    """Some lookups of a best-effort batch failed."""

    def __init__(self, failed_ids: Iterable[int], total: int):
        self.failed_ids = sorted(failed_ids)
        self.total = total
        super().__init__(
            f"{len(self.failed_ids)} of {total} lookups failed: {self.failed_ids}"
        )


def error_message(exc: BaseException, default: str = "Unknown error") -> str:
    """Human-readable message for a failed operation."""
    message = getattr(exc, "message", None) or str(exc)
    return message or default
