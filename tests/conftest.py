from datetime import date, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from swipefeed.datasource.base import NormalizedItem, Provider
from swipefeed.datasource.duga import DugaSource
from swipefeed.datasource.fanza import FanzaSource
from swipefeed.datastore.models import Base
from swipefeed.datastore.repositories import ListingStore
from swipefeed.services.aggregator import ListingAggregator
from swipefeed.services.background import BackgroundWriter
from swipefeed.services.cache import CacheManager
from swipefeed.services.client import UpstreamClient
from swipefeed.services.rate_limiter import SlidingWindowRateLimiter

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class FakeClock:
    """Settable clock; ``ms`` feeds the rate limiter, the call feeds everything else."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def ms(self) -> float:
        return self.now.timestamp() * 1000

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_item(
    item_id: str = "duga-glory-0001",
    title: str = "Sample Title",
    provider: Provider = Provider.DUGA,
    like_count: int = 100,
) -> NormalizedItem:
    return NormalizedItem(
        id=item_id,
        title=title,
        thumbnail_url="https://example.com/thumb.jpg",
        genres=["Drama"],
        like_count=like_count,
        view_count=2000,
        price=1480,
        original_price=2480,
        sale_ends_at=date(2026, 1, 17),
        rating_value=4.2,
        review_count=80,
        provider_tag=provider,
        provenance={"like_count": "observed", "view_count": "synthetic"},
    )


@pytest.fixture()
def clock():
    return FakeClock(datetime(2026, 1, 10, 12, 0, 0))


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'listings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture()
def store(session_factory, clock):
    return ListingStore(session_factory, clock=clock)


@pytest_asyncio.fixture()
async def upstream_client():
    client = UpstreamClient(default_timeout=1.0)
    yield client
    await client.close()


@pytest_asyncio.fixture()
async def make_aggregator(store, clock, upstream_client):
    created: list[ListingAggregator] = []

    def factory(
        fanza_api_id: str = "api-id-123",
        duga_app_id: str = "app-id-456",
        fanza_limit: int = 10,
        duga_limit: int = 60,
        with_store: bool = True,
    ) -> ListingAggregator:
        aggregator = ListingAggregator(
            sources={
                Provider.FANZA: FanzaSource(
                    api_id=fanza_api_id,
                    affiliate_id="aff-990",
                    timeout=1.0,
                    client=upstream_client,
                ),
                Provider.DUGA: DugaSource(
                    app_id=duga_app_id,
                    agent_id="agent-1",
                    banner_id="01",
                    timeout=1.0,
                    client=upstream_client,
                ),
            },
            rate_limiter=SlidingWindowRateLimiter(
                {"fanza": fanza_limit, "duga": duga_limit}, clock=clock.ms
            ),
            cache=CacheManager(clock=clock),
            store=store if with_store else None,
            background=BackgroundWriter(),
        )
        created.append(aggregator)
        return aggregator

    yield factory

    for aggregator in created:
        await aggregator.background.drain()
