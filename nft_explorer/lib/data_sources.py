"""
Async data source interface consumed by the graph explorer.

The provider clients are blocking; ``ProviderDataSource`` runs each call in
a worker thread so the event loop stays free while several fetches are in
flight. Only plain page objects cross back to the loop thread.
"""

import asyncio
from typing import Optional, Protocol

from .api_clients import MoralisClient, OpenSeaClient
from .models import CollectorPage, NFTPage, Profile


class GraphDataSource(Protocol):
    """The fetch capabilities the explorer needs."""

    async def fetch_profile(self, address: str) -> Profile:
        ...

    async def fetch_owned_nfts(self, address: str, page_token: Optional[str], limit: int) -> NFTPage:
        ...

    async def fetch_contract_nfts(
        self, contract_address: str, page_token: Optional[str], limit: int
    ) -> NFTPage:
        ...

    async def fetch_collectors(
        self,
        contract_address: str,
        token_identifier: str,
        page_token: Optional[str],
        limit: int,
    ) -> CollectorPage:
        ...


class ProviderDataSource:
    """GraphDataSource backed by the OpenSea and Moralis HTTP clients."""

    def __init__(self, opensea: OpenSeaClient, moralis: MoralisClient):
        self.opensea = opensea
        self.moralis = moralis

    async def fetch_profile(self, address: str) -> Profile:
        return await asyncio.to_thread(self.opensea.get_account, address)

    async def fetch_owned_nfts(self, address: str, page_token: Optional[str], limit: int) -> NFTPage:
        return await asyncio.to_thread(self.opensea.list_nfts_by_account, address, limit, page_token)

    async def fetch_contract_nfts(
        self, contract_address: str, page_token: Optional[str], limit: int
    ) -> NFTPage:
        return await asyncio.to_thread(
            self.opensea.list_nfts_by_contract, contract_address, limit, page_token
        )

    async def fetch_collectors(
        self,
        contract_address: str,
        token_identifier: str,
        page_token: Optional[str],
        limit: int,
    ) -> CollectorPage:
        return await asyncio.to_thread(
            self.moralis.get_nft_token_id_owners,
            contract_address,
            token_identifier,
            limit,
            page_token,
        )
