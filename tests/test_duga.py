import httpx
import pytest
import respx

from swipefeed.datasource.base import ListingQuery, Provider
from swipefeed.datasource.duga import DugaSource, parse_markup
from swipefeed.datasource.normalize import as_sequence, get_path
from swipefeed.services.errors import UpstreamBadRequestError, UpstreamParseError

from tests.conftest import load_fixture


@pytest.fixture()
def source(upstream_client):
    return DugaSource(
        app_id="app-id-456",
        agent_id="agent-1",
        banner_id="01",
        timeout=1.0,
        client=upstream_client,
    )


def parsed_items(name: str) -> list:
    document = parse_markup(load_fixture(name))
    return as_sequence(get_path(document, "response.items.item"))


class TestParseMarkup:
    def test_repeated_elements_become_lists(self):
        document = parse_markup(load_fixture("duga_search.xml"))
        items = get_path(document, "response.items.item")
        assert isinstance(items, list)
        assert len(items) == 2
        assert get_path(items[0], "category.data.1.name") == "Outdoor"

    def test_single_element_is_mapping(self):
        document = parse_markup(load_fixture("duga_single.xml"))
        item = get_path(document, "response.items.item")
        assert isinstance(item, dict)
        assert len(as_sequence(item)) == 1

    def test_empty_items(self):
        assert parsed_items("duga_empty.xml") == []

    def test_empty_body_is_parse_error(self):
        with pytest.raises(UpstreamParseError):
            parse_markup("")

    def test_image_element_keeps_its_children(self):
        items = parsed_items("duga_keyword.xml")
        image = get_path(items[4], "thumbnail.image")
        assert isinstance(image, dict)
        assert image["small"].endswith("thumb_s.jpg")
        assert image["large"].endswith("thumb_l.jpg")


class TestNormalize:
    def test_full_record(self, source):
        item = source.normalize(parsed_items("duga_search.xml")[0], 0)
        assert item.id == "duga-glory-4110"
        assert item.title == "Morning Walk"
        assert item.thumbnail_url.endswith("480x360.jpg")
        assert item.video_url.endswith("sample.mp4")
        assert item.embed_url is None
        assert item.duration_label == "95分"
        assert item.genres == ["Drama", "Outdoor"]
        assert item.performer_name == "Rin Kato"
        assert item.product_url.startswith("http://click.duga.jp/")
        assert item.price == 1480
        assert item.original_price == 2480
        assert item.provider_tag == Provider.DUGA

    def test_observed_engagement(self, source):
        item = source.normalize(parsed_items("duga_search.xml")[0], 0)
        assert item.like_count == 321
        assert item.rating_value == 4.5
        assert item.review_count == 12
        assert item.provenance["like_count"] == "observed"
        assert item.provenance["rating_value"] == "observed"
        assert item.provenance["review_count"] == "observed"
        assert item.provenance["view_count"] == "synthetic"

    def test_sparse_record(self, source):
        item = source.normalize(parsed_items("duga_search.xml")[1], 1)
        assert item.thumbnail_url.endswith("jacket.jpg")
        assert item.video_url is None
        assert item.duration_label == "N/A"
        assert item.performer_name == "Unknown"
        assert item.product_url == "http://duga.jp/ppv/glory-4111/"
        assert item.price == 400
        assert item.original_price == 1400
        assert item.provenance["like_count"] == "synthetic"
        assert 3.0 <= item.rating_value <= 5.0

    def test_thumbnail_from_nested_image(self, source):
        item = source.normalize(parsed_items("duga_keyword.xml")[4], 4)
        assert item.thumbnail_url.endswith("thumb_l.jpg")


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_page(self, source):
        async with respx.mock(assert_all_called=True) as router:
            route = router.get(host="affapi.duga.jp", path="/search").mock(
                return_value=httpx.Response(200, text=load_fixture("duga_search.xml"))
            )
            items = await source.fetch(ListingQuery(page_size=2, offset=3, genre="01"))

        assert [i.id for i in items] == ["duga-glory-4110", "duga-glory-4111"]
        params = route.calls.last.request.url.params
        assert params["appid"] == "app-id-456"
        assert params["agentid"] == "agent-1"
        assert params["bannerid"] == "01"
        assert params["version"] == "1.2"
        assert params["format"] == "xml"
        assert params["adult"] == "1"
        assert params["sort"] == "favorite"
        assert params["hits"] == "2"
        assert params["offset"] == "3"
        assert params["category"] == "01"

    @pytest.mark.asyncio
    async def test_single_hit(self, source):
        async with respx.mock() as router:
            router.get(host="affapi.duga.jp").mock(
                return_value=httpx.Response(200, text=load_fixture("duga_single.xml"))
            )
            items = await source.fetch(ListingQuery(page_size=1))

        assert len(items) == 1
        assert items[0].id == "duga-kanz-0301"
        assert items[0].price == 2980
        assert items[0].duration_label == "60分"

    @pytest.mark.asyncio
    async def test_repeated_productid_kept_once(self, source):
        xml = load_fixture("duga_search.xml").replace(
            "<productid>glory-4111</productid>", "<productid>glory-4110</productid>"
        )
        async with respx.mock() as router:
            router.get(host="affapi.duga.jp").mock(
                return_value=httpx.Response(200, text=xml)
            )
            items = await source.fetch(ListingQuery(page_size=2))

        assert [i.id for i in items] == ["duga-glory-4110"]
        assert items[0].title == "Morning Walk"

    @pytest.mark.asyncio
    async def test_no_hits(self, source):
        async with respx.mock() as router:
            router.get(host="affapi.duga.jp").mock(
                return_value=httpx.Response(200, text=load_fixture("duga_empty.xml"))
            )
            assert await source.fetch(ListingQuery()) == []

    @pytest.mark.asyncio
    async def test_unexpected_root_is_parse_error(self, source):
        async with respx.mock() as router:
            router.get(host="affapi.duga.jp").mock(
                return_value=httpx.Response(200, text="<html><body>maintenance</body></html>")
            )
            with pytest.raises(UpstreamParseError):
                await source.fetch(ListingQuery())

    @pytest.mark.asyncio
    async def test_bad_request_message_from_markup(self, source):
        async with respx.mock() as router:
            router.get(host="affapi.duga.jp").mock(
                return_value=httpx.Response(400, text=load_fixture("duga_error.xml"))
            )
            with pytest.raises(UpstreamBadRequestError) as exc:
                await source.fetch(ListingQuery())
        assert exc.value.upstream_message == "Invalid appid"
