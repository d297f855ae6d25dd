"""Oracle that closes on-chain shipment tracking records from carrier tracking status."""

from __future__ import annotations

from importlib import metadata

try:
    __version__ = metadata.version("trackoracle")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0+local"
