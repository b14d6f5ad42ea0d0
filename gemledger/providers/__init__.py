from gemledger.providers.base import MetalPriceProvider
from gemledger.providers.metals_api import (
    GoldAPIProvider,
    MetalPriceAPIProvider,
    refresh_rate_table,
)

__all__ = [
    "MetalPriceProvider",
    "MetalPriceAPIProvider",
    "GoldAPIProvider",
    "refresh_rate_table",
]
