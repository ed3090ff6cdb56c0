"""HTTP surface."""

from swipefeed.api.server import ListingServer, create_app

__all__ = ["ListingServer", "create_app"]
