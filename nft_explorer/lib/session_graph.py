"""
Session graph state.

``SessionGraph`` owns every store of one exploration session (profiles,
NFTs, ownership, pagination, collector sets) and is passed explicitly to
the operations that read or change it. All methods are synchronous, so a
commit is never interleaved with another operation's commit.
"""

import logging
from typing import Dict, List, Optional, Sequence, Set

from .collector_filter import CollectorFilterResult
from .graph_projection import GraphProjector
from .identity_index import (
    IdentityIndex,
    InvalidIdentityKey,
    UnknownEntityError,
    nft_key,
    profile_key,
)
from .models import NFT, CollectorSet, GraphView, IngestResult, Profile
from .ownership_ledger import OwnershipLedger
from .pagination import CursorManager
from .profile_resolver import shorten_address


logger = logging.getLogger(__name__)


class SessionGraph:
    """
    All accumulated state of one exploration session.

    ``version`` increases on every mutation and drives projection
    memoization. ``generation`` increases only on ``reset()``, letting
    in-flight operations notice that the state they started from is gone.
    """

    def __init__(self) -> None:
        self.profiles: IdentityIndex[Profile] = IdentityIndex()
        self.nfts: IdentityIndex[NFT] = IdentityIndex()
        self.ledger = OwnershipLedger()
        self.cursors = CursorManager()
        self.collector_sets: Dict[int, CollectorSet] = {}
        self.primary_index: Optional[int] = None
        self.version = 0
        self.generation = 0
        self._projector = GraphProjector()

    def _touch(self) -> None:
        self.version += 1

    def reset(self) -> None:
        """Clear every store at once."""
        self.profiles.reset()
        self.nfts.reset()
        self.ledger.reset()
        self.cursors.reset()
        self.collector_sets = {}
        self.primary_index = None
        self._projector.reset()
        self.generation += 1
        self._touch()

    # Profiles

    @property
    def primary_profile(self) -> Optional[Profile]:
        if self.primary_index is None:
            return None
        return self.profiles.get(self.primary_index)

    def set_primary_profile(self, profile: Profile) -> int:
        """
        Admit the searched subject.

        Raises:
            ValueError: If the session already has a different primary profile
        """
        key = profile_key(profile.address)
        if self.primary_index is not None and self.profiles.key_of(self.primary_index) != key:
            raise ValueError("Session already has a primary profile; reset it first")

        profile.address = key
        profile.is_primary = True
        existing = self.profiles.resolve(key)
        if existing is not None:
            # Seen before as a collector: promote it in place
            entity = self.profiles.get(existing)
            entity.merge_display(profile)
            entity.is_primary = True
            index = existing
        else:
            index = self.profiles.admit(key, profile)

        self.primary_index = index
        self._touch()
        return index

    def admit_profile(self, profile: Profile) -> int:
        """Admit a collector profile; an already known address keeps its entity."""
        key = profile_key(profile.address)
        profile.address = key
        index = self.profiles.admit(key, profile)
        self._touch()
        return index

    def profile_index(self, address: str) -> Optional[int]:
        return self.profiles.resolve(profile_key(address))

    def require_profile(self, address: str) -> int:
        index = self.profile_index(address)
        if index is None:
            raise UnknownEntityError(f"Profile {address} is not part of this session")
        return index

    def known_addresses(self) -> Set[str]:
        """Addresses already materialized as profile nodes."""
        return set(self.profiles.keys())

    # NFTs and ownership

    def nft_index(self, contract_address: str, token_identifier: str) -> Optional[int]:
        return self.nfts.resolve(nft_key(contract_address, token_identifier))

    def ingest_nfts(self, items: Sequence[NFT], owner_index: Optional[int] = None) -> IngestResult:
        """
        Merge a page of NFTs into the session.

        Args:
            items: NFTs from an owner or contract listing
            owner_index: Profile that owns every item, or None for contract
                listings, whose NFTs start with an empty owner set

        Returns:
            IngestResult splitting new and already known NFTs

        Raises:
            UnknownEntityError: If owner_index is not a materialized profile
        """
        if owner_index is not None:
            self.profiles.get(owner_index)

        result = IngestResult()
        for nft in items:
            try:
                key = nft_key(nft.contract_address, nft.token_identifier)
            except InvalidIdentityKey as e:
                logger.warning("Skipping NFT record: %s", e)
                result.skipped += 1
                continue

            index = self.nfts.resolve(key)
            if index is None:
                index = self.nfts.admit(key, nft)
                self.ledger.track(index)
                result.new_nft_indices.append(index)
            else:
                result.existing_nft_indices.append(index)

            if owner_index is not None:
                self.ledger.record_ownership(index, owner_index)

        self._touch()
        return result

    def record_ownership(self, nft_index: int, profile_index: int) -> bool:
        """
        Record an ownership fact between two existing entities.

        Raises:
            UnknownEntityError: If either index was never admitted
        """
        self.nfts.get(nft_index)
        self.profiles.get(profile_index)
        added = self.ledger.record_ownership(nft_index, profile_index)
        if added:
            self._touch()
        return added

    # Collectors

    def collector_set(self, nft_index: int) -> CollectorSet:
        collectors = self.collector_sets.get(nft_index)
        if collectors is None:
            return CollectorSet()
        return CollectorSet(list(collectors.addresses), collectors.filtered_duplicates)

    def commit_collectors(
        self,
        nft_index: int,
        filtered: CollectorFilterResult,
        candidates: Sequence[str],
        profiles: Sequence[Profile],
    ) -> List[int]:
        """
        Commit one collector page for an NFT.

        Args:
            nft_index: NFT the collectors were fetched for
            filtered: Output of the collector filter for ``candidates``
            candidates: Raw owner addresses from the source
            profiles: Enriched (or fallback) profiles of the accepted addresses

        Returns:
            Indices of profiles that became new nodes
        """
        self.nfts.get(nft_index)

        new_indices: List[int] = []
        for profile in profiles:
            key = profile_key(profile.address)
            if self.profiles.resolve(key) is None:
                profile.address = key
                new_indices.append(self.profiles.admit(key, profile))

        collectors = self.collector_sets.setdefault(nft_index, CollectorSet())
        collectors.addresses.extend(filtered.accepted)
        collectors.filtered_duplicates += filtered.duplicate_count

        # Filtered candidates are existing profiles that own this NFT too
        accepted = set(filtered.accepted)
        for address in candidates:
            if not address or address.lower() in accepted:
                continue
            profile_index = self.profiles.resolve(address.lower())
            if profile_index is not None:
                self.ledger.record_ownership(nft_index, profile_index)

        if filtered.duplicate_count:
            logger.info(
                "Filtered out %d duplicate collector(s) for NFT %d",
                filtered.duplicate_count,
                nft_index,
            )
        if new_indices:
            logger.debug(
                "Added collectors %s",
                ", ".join(shorten_address(self.profiles.key_of(i)) for i in new_indices),
            )

        self._touch()
        return new_indices

    # Projection

    def graph(self) -> GraphView:
        """Current node/link set; recomputed only after a mutation."""
        return self._projector.project(
            self.profiles,
            self.nfts,
            self.ledger,
            self.collector_sets,
            self.version,
        )
