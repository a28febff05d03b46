"""
Fetch-and-merge operations driving an exploration session.

Every operation follows the same shape: fetch from the data source
(suspends), filter against the session (sync), enrich new collectors
(suspends, concurrent), then commit to the session in one synchronous step.
No store is read and then written across an ``await``.
"""

import logging
import re
from collections import Counter
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple

from .api_clients import ProfileNotFound
from .collector_filter import filter_collectors
from .config import ExplorerSettings
from .data_sources import GraphDataSource
from .identity_index import profile_key
from .models import CollectorLoadResult, GraphView, IngestResult, NFTPage
from .pagination import Subject, collector_subject, contract_subject, owner_subject
from .profile_resolver import ProfileResolver, fallback_profile, identicon_url, shorten_address
from .session_graph import SessionGraph


logger = logging.getLogger(__name__)

HEX_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_hex_address(value: str) -> bool:
    return bool(HEX_ADDRESS_RE.match(value.strip()))


class GraphExplorer:
    """
    User-facing operations over one SessionGraph.

    Provider errors (ProviderError, RateLimited) propagate to the caller
    after the operation's loading flag is cleared; re-running the same
    operation is safe because every merge is idempotent.
    """

    def __init__(
        self,
        data_source: GraphDataSource,
        settings: Optional[ExplorerSettings] = None,
        session: Optional[SessionGraph] = None,
        resolver: Optional[ProfileResolver] = None,
    ):
        self.data_source = data_source
        self.settings = settings or ExplorerSettings()
        self.session = session or SessionGraph()
        self.resolver = resolver or ProfileResolver(data_source)
        # Keyed by generation so operations from before a reset never touch newer flags
        self._loading: Dict[Tuple[int, Subject], int] = Counter()

    @contextmanager
    def _loading_flag(self, subject: Subject, generation: int) -> Iterator[None]:
        token = (generation, subject)
        self._loading[token] += 1
        try:
            yield
        finally:
            self._loading[token] -= 1
            if self._loading[token] <= 0:
                del self._loading[token]

    def is_loading(self, subject: Subject) -> bool:
        return self._loading.get((self.session.generation, subject), 0) > 0

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation != self.session.generation:
            logger.info("Discarding %s fetched before the session was reset", what)
            return True
        return False

    def graph(self) -> GraphView:
        return self.session.graph()

    def reset(self) -> None:
        self.session.reset()

    # Primary profile

    async def load_profile(self, address_or_username: str, load_collection: bool = True) -> int:
        """
        Resolve the searched profile and make it the session's primary node.

        Starting from a different profile resets the session. A missing
        marketplace profile is replaced by a placeholder when the input is a
        hex address; for a username the ProfileNotFound error propagates.

        Args:
            address_or_username: Wallet address or marketplace username
            load_collection: Also load the first page of the profile's NFTs

        Returns:
            Profile index of the primary profile
        """
        query = address_or_username.strip()
        try:
            profile = await self.data_source.fetch_profile(query)
        except ProfileNotFound:
            if not is_hex_address(query):
                raise
            logger.info("No marketplace profile for %s, using placeholder", shorten_address(query))
            profile = fallback_profile(query)

        if not profile.avatar_url:
            profile.avatar_url = identicon_url(profile.address)

        primary = self.session.primary_profile
        if primary is not None and primary.address != profile_key(profile.address):
            logger.info("Switching primary profile, resetting session")
            self.reset()

        index = self.session.set_primary_profile(profile)
        logger.info(
            "Loaded profile %s (%s)",
            profile.display_name or "Unknown User",
            shorten_address(profile.address),
        )

        if load_collection:
            await self.load_collection(profile.address)
        return index

    # Owner collections

    async def load_collection(self, address: str) -> IngestResult:
        """Load the first page of NFTs owned by a session profile."""
        return await self._load_owner_page(address, None)

    async def load_more_nfts(self, address: str) -> Optional[IngestResult]:
        """
        Load the next page of a profile's NFTs.

        Returns:
            None without fetching when the last page said there is no more
        """
        subject = owner_subject(profile_key(address))
        if not self.session.cursors.can_fetch_more(subject):
            return None
        return await self._load_owner_page(address, self.session.cursors.next_cursor(subject))

    async def _load_owner_page(self, address: str, page_token: Optional[str]) -> IngestResult:
        key = profile_key(address)
        self.session.require_profile(key)
        subject = owner_subject(key)
        generation = self.session.generation

        with self._loading_flag(subject, generation):
            page = await self.data_source.fetch_owned_nfts(key, page_token, self.settings.nft_fetch_limit)
            if self._is_stale(generation, "NFT page"):
                return IngestResult()

            # Looked up again: the profile index is only valid for this generation
            owner_index = self.session.require_profile(key)
            result = self._commit_nft_page(subject, page, owner_index)

        logger.info(
            "Profile %s: %d new NFT(s), %d already known%s",
            shorten_address(key),
            len(result.new_nft_indices),
            len(result.existing_nft_indices),
            ", more available" if result.has_more else "",
        )
        return result

    # Contract expansion

    async def expand_contract(self, contract_address: str) -> IngestResult:
        """Load the first page of NFTs minted by a contract (owners unknown)."""
        return await self._load_contract_page(contract_address, None)

    async def load_more_contract_nfts(self, contract_address: str) -> Optional[IngestResult]:
        subject = contract_subject(profile_key(contract_address))
        if not self.session.cursors.can_fetch_more(subject):
            return None
        return await self._load_contract_page(
            contract_address, self.session.cursors.next_cursor(subject)
        )

    async def _load_contract_page(self, contract_address: str, page_token: Optional[str]) -> IngestResult:
        key = profile_key(contract_address)
        subject = contract_subject(key)
        generation = self.session.generation

        with self._loading_flag(subject, generation):
            page = await self.data_source.fetch_contract_nfts(
                key, page_token, self.settings.contract_expand_limit
            )
            if self._is_stale(generation, "contract page"):
                return IngestResult()
            result = self._commit_nft_page(subject, page, None)

        logger.info(
            "Contract %s: %d new NFT(s), %d already known",
            shorten_address(key),
            len(result.new_nft_indices),
            len(result.existing_nft_indices),
        )
        return result

    def _commit_nft_page(self, subject: Subject, page: NFTPage, owner_index: Optional[int]) -> IngestResult:
        result = self.session.ingest_nfts(page.items, owner_index)
        result.has_more = bool(page.next_page_token)
        self.session.cursors.set_state(subject, page.next_page_token, result.has_more)
        return result

    # Collectors

    async def load_collectors(self, nft_index: int) -> CollectorLoadResult:
        """Load the first page of collectors for an NFT."""
        return await self._load_collector_page(nft_index, None)

    async def load_more_collectors(self, nft_index: int) -> Optional[CollectorLoadResult]:
        """
        Load the next page of collectors for an NFT.

        Returns:
            None without fetching when the last page said there is no more
        """
        subject = collector_subject(self.session.nfts.key_of(nft_index))
        if not self.session.cursors.can_fetch_more(subject):
            return None
        return await self._load_collector_page(nft_index, self.session.cursors.next_cursor(subject))

    async def _load_collector_page(self, nft_index: int, page_token: Optional[str]) -> CollectorLoadResult:
        nft = self.session.nfts.get(nft_index)
        subject = collector_subject(self.session.nfts.key_of(nft_index))
        generation = self.session.generation

        with self._loading_flag(subject, generation):
            page = await self.data_source.fetch_collectors(
                nft.contract_address,
                nft.token_identifier,
                page_token,
                self.settings.collector_fetch_limit,
            )
            if self._is_stale(generation, "collector page"):
                return CollectorLoadResult(nft_index=nft_index)

            filtered = filter_collectors(page.owners, self.session.known_addresses())
            to_resolve = [
                address
                for address in dict.fromkeys(filtered.accepted)
                if self.session.profile_index(address) is None
            ]

            profiles = await self.resolver.resolve_many(to_resolve)
            if self._is_stale(generation, "collector profiles"):
                return CollectorLoadResult(nft_index=nft_index)

            new_indices = self.session.commit_collectors(nft_index, filtered, page.owners, profiles)
            self.session.cursors.set_state(subject, page.next_page_token, page.has_more)

        logger.info(
            "NFT %s #%s: %d new collector(s), %d duplicate(s) filtered%s",
            shorten_address(nft.contract_address),
            nft.token_identifier,
            len(new_indices),
            filtered.duplicate_count,
            ", more available" if page.has_more else "",
        )
        return CollectorLoadResult(
            nft_index=nft_index,
            accepted=filtered.accepted,
            duplicate_count=filtered.duplicate_count,
            new_profile_indices=new_indices,
            has_more=page.has_more,
        )
