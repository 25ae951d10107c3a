"""Import-time entity resolution for freight manifests."""

__version__ = "0.1.0"
