"""Configuration management."""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass
class ApiConfig:
    """Catalog REST API configuration."""

    base_url: str = os.getenv("CLARO_API_BASE_URL", "http://localhost:8080")
    api_token: str = os.getenv("CLARO_API_TOKEN", "")
    timeout: float = float(os.getenv("CLARO_API_TIMEOUT", "30"))

    @property
    def is_configured(self) -> bool:
        """Check if the API base URL is set."""
        return bool(self.base_url.strip())

    @property
    def auth_headers(self) -> dict:
        """Get headers sent with every request."""
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers


@dataclass
class StateConfig:
    """Paging, timing and batching knobs for the view-state machines."""

    page_size: int = 20
    reviews_page_size: int = 10
    summary_limit: int = 30
    search_debounce: float = 0.5
    review_refresh_delay: float = 0.5
    default_lang: str = "en"
    concurrent_requests: int = 5


config = ApiConfig()
state_config = StateConfig()
