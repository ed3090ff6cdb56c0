"""
DUGA web service data source.

API Documentation: https://click.duga.jp/aff/api/
Responses are XML. The parsed document mirrors the markup: an element
that appears once becomes a mapping, a repeated element becomes a list,
so ``response.items.item`` is a mapping for one hit and a list for many.
"""

from typing import Any

import httpx
from bs4 import BeautifulSoup, Tag
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
    parse_int,
    parse_price,
    parse_rating,
    synthetic_id,
    text_of,
)
from swipefeed.services.client import UpstreamClient
from swipefeed.services.errors import UpstreamParseError
from swipefeed.settings import global_settings

DUGA_CONFIG = {
    "version": "1.2",
    "format": "xml",
    "adult": 1,
    "sort": "favorite",
}


def _leaf_text(tag: Tag) -> str:
    return tag.get_text().strip()


def _element_to_node(tag: Tag) -> Any:
    children = [c for c in tag.children if isinstance(c, Tag)]
    if not children:
        return _leaf_text(tag)

    node: dict[str, Any] = {}
    for child in children:
        value = _element_to_node(child)
        if child.name in node:
            existing = node[child.name]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[child.name] = [existing, value]
        else:
            node[child.name] = value
    return node


def parse_markup(xml: str) -> dict[str, Any]:
    """
    Parse an XML payload into a nested document.

    Raises:
        UpstreamParseError: If there is no root element
    """
    if not (xml or "").strip():
        raise UpstreamParseError("Empty response body", service_id="duga")
    soup = BeautifulSoup(xml, "xml")
    root = next((c for c in soup.children if isinstance(c, Tag)), None)
    if root is None:
        raise UpstreamParseError("Empty or non-XML response", service_id="duga")
    return {root.name: _element_to_node(root)}


def _error_message(response: httpx.Response) -> str | None:
    soup = BeautifulSoup(response.text, "xml")
    message = soup.find("message")
    return _leaf_text(message) if message else None


def _names(node: Any) -> list[str]:
    """Names under a ``<category>``/``<performer>`` style ``<data>`` list."""
    names = []
    for data in as_sequence(get_path(node, "data")):
        name = text_of(get_path(data, "name"))
        if name:
            names.append(name)
    return names


class DugaSource(BaseDataSource):
    """
    DUGA product search source.

    Requires an app id / agent id pair; the banner id defaults to "01".
    """

    BASE_URL = "http://affapi.duga.jp/search"

    def __init__(
        self,
        app_id: str | None = None,
        agent_id: str | None = None,
        banner_id: str | None = None,
        timeout: float | None = None,
        client: UpstreamClient | None = None,
    ):
        super().__init__(client)
        self.app_id = app_id if app_id is not None else global_settings.duga_app_id
        self.agent_id = (
            agent_id if agent_id is not None else global_settings.duga_agent_id
        )
        self.banner_id = banner_id or global_settings.duga_banner_id
        self.timeout = timeout or global_settings.duga_timeout

    @property
    def provider(self) -> Provider:
        return Provider.DUGA

    def credentials(self) -> dict[str, str]:
        return {
            "DUGA_APP_ID": "".join((self.app_id or "").split()),
            "DUGA_AGENT_ID": "".join((self.agent_id or "").split()),
        }

    def build_params(self, query: ListingQuery) -> dict[str, Any]:
        creds = self.require_credentials()
        params: dict[str, Any] = {
            "appid": creds["DUGA_APP_ID"],
            "agentid": creds["DUGA_AGENT_ID"],
            "bannerid": self.banner_id,
            "version": DUGA_CONFIG["version"],
            "format": DUGA_CONFIG["format"],
            "adult": DUGA_CONFIG["adult"],
            "sort": DUGA_CONFIG["sort"],
            "hits": query.page_size,
            "offset": query.offset,
        }
        if query.keyword:
            params["keyword"] = query.keyword
        if query.genre:
            params["category"] = query.genre
        return params

    async def fetch(self, query: ListingQuery) -> list[NormalizedItem]:
        """Fetch one page of DUGA listings."""
        params = self.build_params(query)

        xml = await self.client.get_text(
            service_id=self.service_id,
            url=self.BASE_URL,
            params=params,
            timeout=self.timeout,
            error_message=_error_message,
        )

        document = parse_markup(xml)
        response = get_path(document, "response")
        if not isinstance(response, dict):
            logger.error(f"[DUGA] Unexpected root element: {list(document)}")
            raise UpstreamParseError(
                "Invalid API response: missing <response>",
                service_id=self.service_id,
            )

        raw_items = as_sequence(get_path(response, "items.item"))
        items = self.normalize_batch(raw_items)
        logger.info(f"[DUGA] Fetched {len(items)} items (offset={query.offset})")
        return items

    def normalize(self, raw: dict[str, Any], index: int) -> NormalizedItem:
        product_id = text_of(get_path(raw, "productid"))

        thumbnail = (
            text_of(get_path(raw, "posterimage.large"))
            or text_of(get_path(raw, "posterimage.midium"))
            or text_of(get_path(raw, "jacketimage.large"))
            or text_of(get_path(raw, "thumbnail.image.large"))
        )
        volume = text_of(get_path(raw, "volume"))
        if volume.isdigit():
            duration = f"{volume}分"
        else:
            duration = volume or "N/A"

        performers = _names(get_path(raw, "performer"))
        price = parse_price(get_path(raw, "price"))

        engagement = (
            EngagementBuilder()
            .add("like_count", parse_int(get_path(raw, "mylist.total")))
            .add("rating_value", parse_rating(get_path(raw, "review.rating")))
            .add("review_count", parse_int(get_path(raw, "review.reviewer")))
            .build()
        )

        return NormalizedItem(
            id=f"duga-{product_id}" if product_id else synthetic_id("duga", index),
            title=text_of(get_path(raw, "title"), "Untitled"),
            thumbnail_url=thumbnail or None,
            video_url=text_of(get_path(raw, "samplemovie.midium.movie")) or None,
            embed_url=None,
            duration_label=duration,
            genres=_names(get_path(raw, "category")),
            performer_name=performers[0] if performers else "Unknown",
            product_url=text_of(get_path(raw, "affiliateurl"))
            or text_of(get_path(raw, "url")),
            price=price,
            original_price=price + 1000,
            provider_tag=self.provider,
            **engagement,
        )
