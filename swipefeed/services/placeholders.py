"""
Placeholder listings served when no real data is available.

The structure is fixed; cosmetic numbers are random on every call.
"""

import random

from swipefeed.datasource.base import ListingQuery, NormalizedItem, Provider
from swipefeed.datasource.normalize import EngagementBuilder, synthetic_id

DEMO_GENRES = [
    ["Amateur", "Real"],
    ["Live", "Personal"],
    ["Drama", "Story"],
    ["Featured", "New Release"],
]
DEMO_PRICES = [980, 1480, 1980, 2980]
DEMO_DURATIONS = [60, 75, 90, 120]


def demo_items(provider: Provider, query: ListingQuery) -> list[NormalizedItem]:
    """Build exactly ``query.page_size`` placeholder items with unique ids."""
    label = provider.value.upper()
    items = []

    for i in range(query.page_size):
        number = query.offset + i
        price = random.choice(DEMO_PRICES)
        items.append(
            NormalizedItem(
                id=synthetic_id(f"{provider.value}-demo", i),
                title=f"{label} Sample Video {number}",
                thumbnail_url=f"https://picsum.photos/400/600?random={random.randint(1, 1000)}",
                duration_label=f"{random.choice(DEMO_DURATIONS)}分",
                genres=list(random.choice(DEMO_GENRES)),
                performer_name=f"{label} Performer {number}",
                price=price,
                original_price=price + 1000,
                provider_tag=provider,
                **EngagementBuilder().build(),
            )
        )

    return items
