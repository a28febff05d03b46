"""
Pytest configuration and shared fixtures for nft-collector-graph tests.
"""

import asyncio
import dataclasses
from typing import Dict, List, Optional, Tuple

import pytest

from nft_explorer.lib.api_clients import ProfileNotFound
from nft_explorer.lib.models import NFT, CollectorPage, NFTPage, Profile


class FakeDataSource:
    """
    In-memory GraphDataSource.

    Pages are registered per (subject, page token); unknown lookups return an
    empty page. Every call is recorded and yields to the event loop once so
    concurrent operations actually interleave.
    """

    def __init__(self) -> None:
        self.profiles: Dict[str, Profile] = {}
        self.owned_pages: Dict[Tuple[str, Optional[str]], NFTPage] = {}
        self.contract_pages: Dict[Tuple[str, Optional[str]], NFTPage] = {}
        self.collector_pages: Dict[Tuple[str, str, Optional[str]], CollectorPage] = {}
        self.profile_errors: Dict[str, Exception] = {}
        self.errors: Dict[str, Exception] = {}
        self.calls: List[Tuple] = []

    async def fetch_profile(self, address: str) -> Profile:
        self.calls.append(("profile", address))
        await asyncio.sleep(0)
        key = address.lower()
        if key in self.profile_errors:
            raise self.profile_errors[key]
        if key not in self.profiles:
            raise ProfileNotFound(f"No profile for {address}", status_code=404)
        return dataclasses.replace(self.profiles[key])

    async def fetch_owned_nfts(self, address: str, page_token: Optional[str], limit: int) -> NFTPage:
        self.calls.append(("owned", address, page_token, limit))
        await asyncio.sleep(0)
        if "owned" in self.errors:
            raise self.errors["owned"]
        return self.owned_pages.get((address.lower(), page_token), NFTPage(items=[]))

    async def fetch_contract_nfts(self, contract_address: str, page_token: Optional[str], limit: int) -> NFTPage:
        self.calls.append(("contract", contract_address, page_token, limit))
        await asyncio.sleep(0)
        if "contract" in self.errors:
            raise self.errors["contract"]
        return self.contract_pages.get((contract_address.lower(), page_token), NFTPage(items=[]))

    async def fetch_collectors(
        self,
        contract_address: str,
        token_identifier: str,
        page_token: Optional[str],
        limit: int,
    ) -> CollectorPage:
        self.calls.append(("collectors", contract_address, token_identifier, page_token, limit))
        await asyncio.sleep(0)
        if "collectors" in self.errors:
            raise self.errors["collectors"]
        return self.collector_pages.get(
            (contract_address.lower(), token_identifier, page_token),
            CollectorPage(owners=[]),
        )

    def calls_of(self, kind: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == kind]


def make_nft(contract: str, token_id: str, name: Optional[str] = None) -> NFT:
    """Build an NFT with predictable display metadata."""
    return NFT(
        contract_address=contract,
        token_identifier=token_id,
        name=name or f"Token {token_id}",
        description="",
        image_url=f"https://img.example/{contract}/{token_id}.png",
        collection_name="Test Collection",
        external_url=f"https://opensea.io/assets/ethereum/{contract}/{token_id}",
    )


@pytest.fixture
def nft_factory():
    """Factory for NFTs: nft_factory(contract, token_id, name=None)."""
    return make_nft


@pytest.fixture
def fake_source():
    """Empty in-memory data source."""
    return FakeDataSource()


@pytest.fixture
def sample_wallet_address():
    """Sample Ethereum wallet address for testing (mixed case)."""
    return "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"  # vitalik.eth


@pytest.fixture
def collector_addresses():
    """Three distinct collector addresses."""
    return [
        "0x1111111111111111111111111111111111111111",
        "0x2222222222222222222222222222222222222222",
        "0x3333333333333333333333333333333333333333",
    ]


@pytest.fixture
def contract_address():
    """Sample NFT contract address."""
    return "0xbc4ca0eda7647a8ab7c2061c2e118a18a936f13d"


@pytest.fixture
def mock_opensea_api_key():
    """Mock OpenSea API key for testing."""
    return "test-opensea-key-12345"


@pytest.fixture
def mock_moralis_api_key():
    """Mock Moralis API key for testing."""
    return "test-moralis-key-67890"
