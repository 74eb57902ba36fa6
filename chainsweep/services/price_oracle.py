"""
USD price oracle.

Spot prices for SOL, ETH and TRX with a short cache and layered
fallbacks. Conversions never raise; a deposit is always priced.
"""

import asyncio
import time
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import aiohttp
from loguru import logger

from chainsweep.config.constants import (
    COINGECKO_PRICE_URL,
    CRYPTOCOMPARE_PRICE_URL,
    FALLBACK_USD_PRICES,
    NETWORK_SYMBOLS,
    PRICE_HTTP_TIMEOUT,
)
from chainsweep.models.enums import Network

USD_QUANT = Decimal("0.01")


class PriceOracle:
    """
    Cached crypto/USD prices.

    Features:
    - CoinGecko simple-price, CryptoCompare pricemulti as backup
    - Last good prices kept when both sources fail
    - Static per-network prices when nothing was ever fetched
    """

    def __init__(
        self,
        cache_ttl: float = 300.0,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize oracle.

        Args:
            cache_ttl: Seconds a fetched price set stays fresh
            session: Shared aiohttp session (created lazily when omitted)
            clock: Monotonic clock (injectable for tests)
        """
        self.cache_ttl = cache_ttl
        self._session = session
        self._owns_session = session is None
        self._clock = clock
        self._prices: dict[Network, Decimal] = {}
        self._updated_at: float | None = None
        self._lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=PRICE_HTTP_TIMEOUT),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    def is_stale(self) -> bool:
        """True when no price set was fetched within the cache TTL."""
        if self._updated_at is None:
            return True
        return self._clock() - self._updated_at >= self.cache_ttl

    async def get_price(self, network: Network) -> Decimal:
        """USD price of one main unit; never raises."""
        if self.is_stale():
            async with self._lock:
                if self.is_stale():
                    await self.refresh()

        price = self._prices.get(network)
        if price is None:
            price = Decimal(FALLBACK_USD_PRICES[network])
            logger.warning(f"Using static fallback price for {NETWORK_SYMBOLS[network]}: ${price}")
        return price

    async def convert_to_usd(self, amount: Decimal, network: Network) -> Decimal:
        """
        Convert a main-unit amount to USD.

        Args:
            amount: Amount in SOL / ETH / TRX
            network: Network of the amount

        Returns:
            USD value rounded to cents
        """
        price = await self.get_price(network)
        return (Decimal(amount) * price).quantize(USD_QUANT, rounding=ROUND_HALF_UP)

    async def refresh(self) -> bool:
        """
        Fetch a new price set.

        Returns:
            True if any source answered
        """
        for source, fetch in (
            ("CoinGecko", self._fetch_coingecko),
            ("CryptoCompare", self._fetch_cryptocompare),
        ):
            try:
                prices = await fetch()
            except (
                aiohttp.ClientError,
                TimeoutError,
                ValueError,
                KeyError,
                TypeError,
                InvalidOperation,
            ) as e:
                logger.warning(f"{source} price fetch failed: {e}")
                continue

            if not prices:
                logger.warning(f"{source} returned no usable prices")
                continue

            self._prices.update(prices)
            self._updated_at = self._clock()
            summary = ", ".join(f"{NETWORK_SYMBOLS[n]}=${p}" for n, p in prices.items())
            logger.info(f"Prices updated from {source}: {summary}")
            return True

        if self._prices:
            logger.warning("All price sources failed, using cached prices")
        else:
            logger.error("All price sources failed and no cached prices, using static fallbacks")
        return False

    async def _fetch_json(self, url: str) -> dict:
        session = await self._get_session()
        async with session.get(url) as response:
            if response.status != 200:
                raise ValueError(f"HTTP {response.status}")
            return await response.json()

    async def _fetch_coingecko(self) -> dict[Network, Decimal]:
        data = await self._fetch_json(COINGECKO_PRICE_URL)
        return _parse_prices(data, {network: (network.value, "usd") for network in Network})

    async def _fetch_cryptocompare(self) -> dict[Network, Decimal]:
        data = await self._fetch_json(CRYPTOCOMPARE_PRICE_URL)
        return _parse_prices(
            data, {network: (NETWORK_SYMBOLS[network], "USD") for network in Network}
        )

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()


def _parse_prices(data: dict, keys: dict[Network, tuple[str, str]]) -> dict[Network, Decimal]:
    prices: dict[Network, Decimal] = {}
    for network, (outer, inner) in keys.items():
        value = (data.get(outer) or {}).get(inner)
        if value is None:
            continue
        price = Decimal(str(value))
        if price > 0:
            prices[network] = price
    return prices
