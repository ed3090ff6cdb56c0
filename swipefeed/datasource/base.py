"""
Base data source interface and the normalized listing model.
"""

from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from swipefeed.datasource.normalize import sale_end_date, synthetic_id
from swipefeed.services.client import UpstreamClient, get_upstream_client
from swipefeed.services.errors import CredentialsMissingError

Provenance = Literal["observed", "synthetic"]


class Provider(str, Enum):
    """Upstream providers."""

    FANZA = "fanza"  # JSON REST API
    DUGA = "duga"  # XML REST API


class ListingQuery(BaseModel):
    """Request-shaping parameters shared by every provider."""

    page_size: int = Field(default=5, ge=1, le=100)
    offset: int = Field(default=1, ge=1)
    keyword: str | None = None
    genre: str | None = None

    def cache_params(self, provider: Provider) -> dict[str, Any]:
        return {
            "provider": provider.value,
            "page_size": self.page_size,
            "offset": self.offset,
            "keyword": self.keyword or None,
            "genre": self.genre or None,
        }


class NormalizedItem(BaseModel):
    """Canonical video listing produced by every adapter."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(min_length=1)
    title: str
    thumbnail_url: str | None = None
    video_url: str | None = None
    embed_url: str | None = None
    duration_label: str = "N/A"
    genres: list[str] = Field(default_factory=list)
    performer_name: str = "Unknown"
    like_count: int = 0
    view_count: int = 0
    product_url: str = ""
    price: int = 980
    original_price: int = 1980
    sale_ends_at: date
    rating_value: float = Field(default=0.0, ge=0, le=5)
    review_count: int = 0
    provider_tag: Provider
    provenance: dict[str, Provenance] = Field(default_factory=dict)


class BaseDataSource(ABC):
    """
    Abstract base class for the upstream adapters.

    All data sources should:
    - Use UpstreamClient for HTTP requests (deadline, error classification)
    - Return NormalizedItem models
    - Never let one malformed record sink a whole page
    """

    timeout: float = 30.0

    def __init__(self, client: UpstreamClient | None = None):
        self.client = client or get_upstream_client()

    @property
    @abstractmethod
    def provider(self) -> Provider:
        """Provider this source talks to."""
        ...

    @property
    def service_id(self) -> str:
        return self.provider.value

    @abstractmethod
    def credentials(self) -> dict[str, str]:
        """Credential name -> value, whitespace already stripped."""
        ...

    @abstractmethod
    async def fetch(self, query: ListingQuery) -> list[NormalizedItem]:
        """Fetch one page of listings."""
        ...

    @abstractmethod
    def normalize(self, raw: dict[str, Any], index: int) -> NormalizedItem:
        """Convert one upstream record."""
        ...

    def is_configured(self) -> bool:
        return all(self.credentials().values())

    def require_credentials(self) -> dict[str, str]:
        creds = self.credentials()
        missing = [name for name, value in creds.items() if not value]
        if missing:
            logger.error(f"[{self.service_id}] API credentials not configured")
            raise CredentialsMissingError(self.service_id, missing)
        return creds

    def normalize_batch(self, raw_items: list[Any]) -> list[NormalizedItem]:
        """
        Normalize a page, replacing records that fail with error placeholders.

        Ids are unique within the returned batch: when upstream repeats an id,
        the first record wins and later ones are dropped.
        """
        items = []
        seen: set[str] = set()
        for index, raw in enumerate(raw_items):
            try:
                if not isinstance(raw, dict):
                    raise TypeError(f"expected a mapping, got {type(raw).__name__}")
                item = self.normalize(raw, index)
            except Exception as e:
                logger.warning(f"[{self.service_id}] Failed to normalize item {index}: {e}")
                item = self.error_placeholder(index, e)

            if item.id in seen:
                logger.warning(f"[{self.service_id}] Dropping duplicate item {item.id}")
                continue
            seen.add(item.id)
            items.append(item)
        return items

    def error_placeholder(self, index: int, error: Exception) -> NormalizedItem:
        return NormalizedItem(
            id=synthetic_id(f"{self.service_id}-error", index),
            title=f"[error] {type(error).__name__}",
            sale_ends_at=sale_end_date(),
            provider_tag=self.provider,
            provenance={"sale_ends_at": "synthetic"},
        )
