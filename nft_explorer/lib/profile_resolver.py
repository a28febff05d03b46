"""
Profile enrichment for newly discovered collector addresses.

Each address gets one provider lookup. When the provider fails or has no
profile, a placeholder identity is derived from the address alone so the
collector can still be drawn.
"""

import asyncio
import logging
from typing import Dict, List, Sequence

from .api_clients import ProviderError
from .data_sources import GraphDataSource
from .models import Profile


logger = logging.getLogger(__name__)

IDENTICON_URL = "https://api.dicebear.com/7.x/identicon/svg?seed={seed}"


def shorten_address(address: str) -> str:
    """
    Truncate an address for display.

    Examples:
        shorten_address("0x1234567890abcdef1234567890abcdef12345678") -> "0x1234...5678"
    """
    return f"{address[:6]}...{address[-4:]}"


def identicon_url(address: str) -> str:
    """Deterministic placeholder avatar seeded by the lowercased address."""
    return IDENTICON_URL.format(seed=address.lower())


def fallback_profile(address: str) -> Profile:
    """
    Build the placeholder profile for an address without a provider profile.

    Needs no network access, so the result is fully determined by the address.
    """
    canonical = address.lower()
    return Profile(
        address=canonical,
        display_name=shorten_address(canonical),
        avatar_url=identicon_url(canonical),
        is_primary=False,
    )


class ProfileResolver:
    """
    Resolves display profiles through a data source.

    Concurrent requests for the same address share a single in-flight lookup.
    """

    def __init__(self, data_source: GraphDataSource):
        self.data_source = data_source
        self._in_flight: Dict[str, "asyncio.Task[Profile]"] = {}

    async def _lookup(self, address: str) -> Profile:
        try:
            profile = await self.data_source.fetch_profile(address)
        except ProviderError as e:
            # ProfileNotFound and RateLimited are ProviderErrors too
            logger.debug("Using fallback profile for %s: %s", shorten_address(address), e)
            return fallback_profile(address)

        # The provider may answer for a different casing; identity stays ours
        profile.address = address
        profile.is_primary = False
        if not profile.display_name:
            profile.display_name = shorten_address(address)
        if not profile.avatar_url:
            profile.avatar_url = identicon_url(address)
        return profile

    async def resolve(self, address: str) -> Profile:
        """
        Resolve the display profile for one address.

        Args:
            address: Collector address (any case)

        Returns:
            The provider profile, or the fallback profile on any provider failure
        """
        canonical = address.lower()
        task = self._in_flight.get(canonical)
        if task is None:
            task = asyncio.ensure_future(self._lookup(canonical))
            self._in_flight[canonical] = task
            task.add_done_callback(lambda _t, key=canonical: self._in_flight.pop(key, None))
        return await task

    async def resolve_many(self, addresses: Sequence[str]) -> List[Profile]:
        """
        Resolve a batch of addresses concurrently.

        Each distinct address (case-insensitive) is looked up once; results are
        returned in first-occurrence order. A failure for one address only
        affects that address.
        """
        unique: List[str] = []
        seen = set()
        for address in addresses:
            canonical = address.lower()
            if canonical not in seen:
                seen.add(canonical)
                unique.append(canonical)

        if not unique:
            return []

        return list(await asyncio.gather(*(self.resolve(address) for address in unique)))
