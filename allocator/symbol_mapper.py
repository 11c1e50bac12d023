"""
Symbol mapping between display tickers and provider-specific symbols.

Features:
- Static mapping table for known exceptions
- Pattern rules per provider (e.g. Stooq wants "voo.us", "brk-b.us")
- Optional JSON override file, keyed by provider
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from .models import Provider

logger = logging.getLogger(__name__)

STOOQ_SUFFIX = ".us"

# Known exceptions that the pattern rules would get wrong
STATIC_MAPPING: Dict[str, Dict[str, str]] = {
    Provider.STOOQ.value: {"BRK.B": "brk-b.us"},
    Provider.FINNHUB.value: {},
    Provider.ALPHAVANTAGE.value: {},
}


class SymbolMapper:
    """Maps display tickers to the symbol each provider expects."""

    def __init__(self, mapping_file: Optional[Union[str, Path]] = "data/symbol_mapping.json"):
        self.mapping_file = Path(mapping_file) if mapping_file else None
        self.mapping = self._load_mapping()

    def _load_mapping(self) -> Dict[str, Dict[str, str]]:
        """Merge the static table with overrides from the JSON file."""
        mapping = {provider: dict(table) for provider, table in STATIC_MAPPING.items()}

        if self.mapping_file and self.mapping_file.exists():
            try:
                with open(self.mapping_file, "r", encoding="utf-8") as f:
                    overrides = json.load(f)
                for provider, table in overrides.items():
                    if isinstance(table, dict):
                        mapping.setdefault(provider, {}).update(table)
                logger.debug(f"Loaded symbol overrides from {self.mapping_file}")
            except Exception as e:
                logger.warning(f"Failed to load mapping file: {e}")

        return mapping

    def _pattern_symbol(self, symbol: str, provider: Provider) -> str:
        """Apply the provider's naming convention."""
        if provider is Provider.STOOQ:
            # Class shares use a dash on Stooq: "BRK.B" -> "brk-b.us"
            return symbol.lower().replace(".", "-") + STOOQ_SUFFIX
        return symbol

    def map_symbol(self, symbol: str, provider: Union[Provider, str]) -> str:
        """
        Map a display ticker to a provider symbol.

        Args:
            symbol: Display ticker (e.g. "BRK.B")
            provider: Target provider

        Returns:
            Provider-specific symbol
        """
        provider = Provider(provider)
        table = self.mapping.get(provider.value, {})
        if symbol in table:
            return table[symbol]
        return self._pattern_symbol(symbol, provider)

    def add_mapping(self, symbol: str, provider: Union[Provider, str], mapped: str) -> None:
        """Register an override for this mapper instance."""
        provider = Provider(provider)
        self.mapping.setdefault(provider.value, {})[symbol] = mapped
