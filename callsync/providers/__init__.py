"""Voice provider clients"""

from callsync.providers.exotel import ExotelClient

__all__ = ["ExotelClient"]
