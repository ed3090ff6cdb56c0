"""FANZA (DMM affiliate) JSON data source."""

from swipefeed.datasource.fanza.fanza import FanzaSource

__all__ = ["FanzaSource"]
