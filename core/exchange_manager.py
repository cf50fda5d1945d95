"""
Adapter Registry: Central Registry for Exchange Adapters

This module provides the read-only registry of exchange adapters used by the
collection scheduler.

Design:
    - Single source of truth for which exchanges are collected
    - Populated once at construction, read-only afterwards (no runtime registration)
    - Lookup by name, case-insensitive
    - Optional restriction to a configured subset of exchanges

Example Usage:
    registry = AdapterRegistry()                      # every known adapter
    registry = AdapterRegistry(enabled=["bybit", "gate"])

    adapter = registry.get_adapter("bybit")
    for name, adapter in registry.items():
        ...

    # Adding a new exchange:
    # 1. Create exchanges/<name>/__init__.py with an adapter class
    # 2. Add it to default_adapters()
"""

from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional, Tuple

from core.exchange_interface import ExchangeAdapter
from core.logging import logger


def default_adapters(detail_fetch_limit: Optional[int] = None) -> List[ExchangeAdapter]:
    """
    Instantiate every built-in adapter.

    Args:
        detail_fetch_limit: Cap on per-cycle detail requests for list-then-detail adapters

    Returns:
        List of adapter instances, in registration order
    """
    # Import here to avoid circular imports
    # Each exchange module imports from core, so we can't import at module level
    from exchanges.binance import BinanceAdapter
    from exchanges.bybit import BybitAdapter
    from exchanges.htx import HTXAdapter
    from exchanges.gate import GateAdapter
    from exchanges.bitget import BitgetAdapter
    from exchanges.mexc import MEXCAdapter
    from exchanges.bingx import BingXAdapter
    from exchanges.bitmart import BitmartAdapter
    from exchanges.kucoin import KuCoinAdapter
    from exchanges.okx import OKXAdapter

    return [
        BinanceAdapter(),
        BybitAdapter(),
        HTXAdapter(),
        GateAdapter(),
        BitgetAdapter(),
        MEXCAdapter(),
        BingXAdapter(),
        BitmartAdapter(),
        KuCoinAdapter(max_instruments=detail_fetch_limit),
        OKXAdapter(max_instruments=detail_fetch_limit),
    ]


class AdapterRegistry:
    """
    Read-only registry of exchange adapters.

    Attributes:
        adapters: Read-only mapping of exchange name to adapter

    Example:
        >>> registry = AdapterRegistry(enabled=["bybit"])
        >>> registry.list_exchanges()
        ['bybit']
        >>> registry.get_adapter("BYBIT")
        <BybitAdapter(name='bybit', strategy='single_phase')>
    """

    def __init__(
        self,
        adapters: Optional[Iterable[ExchangeAdapter]] = None,
        enabled: Optional[Iterable[str]] = None,
    ):
        """
        Build the registry.

        Args:
            adapters: Adapters to register (defaults to every built-in adapter)
            enabled: Exchange names to keep (None or empty = keep all)

        Raises:
            ValueError: On duplicate adapter names or unknown enabled names
        """
        if adapters is None:
            from core.config import settings
            adapters = default_adapters(settings.detail_fetch_limit)

        registry = {}
        for adapter in adapters:
            key = adapter.name.lower()
            if key in registry:
                raise ValueError(f"Duplicate adapter registered for exchange '{key}'")
            registry[key] = adapter

        wanted = [name.lower() for name in (enabled or [])]
        if wanted:
            unknown = [name for name in wanted if name not in registry]
            if unknown:
                raise ValueError(
                    f"Unknown exchange(s): {', '.join(unknown)}. "
                    f"Available exchanges: {', '.join(registry)}"
                )
            registry = {name: adapter for name, adapter in registry.items() if name in wanted}

        self._adapters = registry
        self.adapters: Mapping[str, ExchangeAdapter] = MappingProxyType(self._adapters)

        logger.info(
            f"AdapterRegistry initialized with {len(self.adapters)} exchange(s): "
            f"{', '.join(self.adapters.keys())}"
        )

    # ============================================
    # Retrieval
    # ============================================

    def get_adapter(self, name: str) -> ExchangeAdapter:
        """
        Get an adapter by exchange name.

        Raises:
            ValueError: If the exchange is not registered
        """
        name = name.lower()

        if name not in self.adapters:
            available = ", ".join(self.adapters.keys())
            logger.error(f"Exchange '{name}' not found. Available: {available}")
            raise ValueError(
                f"Exchange '{name}' is not supported. "
                f"Available exchanges: {available}"
            )

        return self.adapters[name]

    def has_exchange(self, name: str) -> bool:
        """Check if an exchange is registered (case-insensitive)."""
        return name.lower() in self.adapters

    def list_exchanges(self) -> List[str]:
        """Registered exchange names, in registration order."""
        return list(self.adapters.keys())

    def items(self) -> Iterator[Tuple[str, ExchangeAdapter]]:
        return iter(self.adapters.items())

    def get_exchanges_with_strategy(self, strategy: str) -> List[str]:
        """
        Exchanges using a given fetch strategy.

        Example:
            >>> registry.get_exchanges_with_strategy("list_then_detail")
            ['kucoin', 'okx']
        """
        return [name for name, adapter in self.adapters.items() if adapter.strategy == strategy]

    # ============================================
    # Utility Methods
    # ============================================

    def __iter__(self) -> Iterator[ExchangeAdapter]:
        return iter(self.adapters.values())

    def __contains__(self, name: str) -> bool:
        return self.has_exchange(name)

    def __len__(self) -> int:
        return len(self.adapters)

    def __repr__(self) -> str:
        return f"<AdapterRegistry(exchanges={list(self.adapters.keys())})>"
