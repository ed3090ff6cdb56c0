"""
FANZA (DMM affiliate API v3) data source.

API Documentation: https://affiliate.dmm.com/api/v3/itemlist.html
Responses are JSON with the item list under ``result.items``.
"""

from typing import Any

import httpx
from loguru import logger

from swipefeed.datasource.base import (
    BaseDataSource,
    ListingQuery,
    NormalizedItem,
    Provider,
)
from swipefeed.datasource.normalize import (
    EngagementBuilder,
    as_sequence,
    get_path,
    parse_price,
    synthetic_id,
)
from swipefeed.services.client import UpstreamClient
from swipefeed.services.errors import UpstreamParseError
from swipefeed.settings import global_settings

FANZA_CONFIG = {
    "site": "FANZA",
    "service": "digital",
    "floor": "videoa",
    "output": "json",
}


def sample_video_url(content_id: str) -> str:
    return (
        "https://cc3001.dmm.co.jp/litevideo/freepv/"
        f"{content_id[:1]}/{content_id[:3]}/{content_id}/{content_id}_mhb_w.mp4"
    )


def player_url(content_id: str) -> str:
    return f"https://www.dmm.co.jp/litevideo/-/player/=/title=player/cid={content_id}/"


def detail_url(content_id: str) -> str:
    return f"https://www.dmm.co.jp/digital/videoa/-/detail/=/cid={content_id}/"


def _error_message(response: httpx.Response) -> str | None:
    return get_path(response.json(), "result.message")


class FanzaSource(BaseDataSource):
    """
    FANZA item list source.

    Requires an API id / affiliate id pair.
    """

    BASE_URL = "https://api.dmm.com/affiliate/v3/ItemList"

    def __init__(
        self,
        api_id: str | None = None,
        affiliate_id: str | None = None,
        timeout: float | None = None,
        client: UpstreamClient | None = None,
    ):
        super().__init__(client)
        self.api_id = api_id if api_id is not None else global_settings.fanza_api_id
        self.affiliate_id = (
            affiliate_id
            if affiliate_id is not None
            else global_settings.fanza_affiliate_id
        )
        self.timeout = timeout or global_settings.fanza_timeout

    @property
    def provider(self) -> Provider:
        return Provider.FANZA

    def credentials(self) -> dict[str, str]:
        # Secrets pasted into env files often carry stray newlines/spaces
        return {
            "FANZA_API_ID": "".join((self.api_id or "").split()),
            "FANZA_AFFILIATE_ID": "".join((self.affiliate_id or "").split()),
        }

    def build_params(self, query: ListingQuery) -> dict[str, Any]:
        creds = self.require_credentials()
        params: dict[str, Any] = {
            "api_id": creds["FANZA_API_ID"],
            "affiliate_id": creds["FANZA_AFFILIATE_ID"],
            "site": FANZA_CONFIG["site"],
            "service": FANZA_CONFIG["service"],
            "floor": FANZA_CONFIG["floor"],
            "hits": query.page_size,
            "offset": query.offset,
            "output": FANZA_CONFIG["output"],
        }
        if query.keyword:
            params["keyword"] = query.keyword
        if query.genre:
            params["article"] = "genre"
            params["article_id"] = query.genre
        return params

    async def fetch(self, query: ListingQuery) -> list[NormalizedItem]:
        """Fetch one page of FANZA listings."""
        params = self.build_params(query)

        data = await self.client.get_json(
            service_id=self.service_id,
            url=self.BASE_URL,
            params=params,
            timeout=self.timeout,
            error_message=_error_message,
        )

        raw_items = get_path(data, "result.items")
        if raw_items is None:
            logger.error(f"[FANZA] Invalid API response: {str(data)[:200]}")
            raise UpstreamParseError(
                "Invalid API response: missing result.items",
                service_id=self.service_id,
            )

        items = self.normalize_batch(as_sequence(raw_items))
        logger.info(f"[FANZA] Fetched {len(items)} items (offset={query.offset})")
        return items

    def normalize(self, raw: dict[str, Any], index: int) -> NormalizedItem:
        content_id = get_path(raw, "content_id")
        content_id = str(content_id) if content_id else None

        price_text = get_path(raw, "prices.price")
        list_price_text = get_path(raw, "prices.list_price")
        price = parse_price(price_text or list_price_text)
        if list_price_text and price_text:
            original_price = max(parse_price(list_price_text), price)
        else:
            original_price = price + 1000

        engagement = EngagementBuilder().build()

        return NormalizedItem(
            id=f"fanza-{content_id}" if content_id else synthetic_id("fanza", index),
            title=get_path(raw, "title", "Untitled"),
            thumbnail_url=get_path(raw, "imageURL.large")
            or get_path(raw, "imageURL.small"),
            video_url=sample_video_url(content_id) if content_id else None,
            embed_url=player_url(content_id) if content_id else None,
            duration_label=str(get_path(raw, "volume", "N/A")),
            genres=[
                g["name"]
                for g in as_sequence(get_path(raw, "iteminfo.genre"))
                if isinstance(g, dict) and g.get("name")
            ],
            performer_name=get_path(raw, "iteminfo.actress.0.name", "Unknown"),
            product_url=get_path(raw, "affiliateURL")
            or (detail_url(content_id) if content_id else ""),
            price=price,
            original_price=original_price,
            provider_tag=self.provider,
            **engagement,
        )
