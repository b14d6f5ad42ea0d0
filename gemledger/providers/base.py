from abc import ABC, abstractmethod


class MetalPriceProvider(ABC):
    provider_name: str

    @abstractmethod
    def fetch_latest_per_oz(self, symbols: list[str], currency: str) -> dict[str, float]:
        """Returns {symbol: price per troy ounce in `currency`}."""
        raise NotImplementedError
