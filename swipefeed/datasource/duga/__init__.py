"""DUGA XML data source."""

from swipefeed.datasource.duga.duga import DugaSource, parse_markup

__all__ = ["DugaSource", "parse_markup"]
