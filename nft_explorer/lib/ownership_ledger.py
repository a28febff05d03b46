"""
Ownership ledger: the set of owning profiles per NFT.

Ownership is modelled as a set from the first recorded fact, so a token
picked up by a second wallet (ERC-1155) simply grows its set.
"""

from typing import Dict, FrozenSet, Set

from .identity_index import UnknownEntityError


class OwnershipLedger:
    """Owner sets keyed by NFT index."""

    def __init__(self) -> None:
        self._owners: Dict[int, Set[int]] = {}

    def track(self, nft_index: int) -> None:
        """Register an NFT with an empty owner set (no-op if already tracked)."""
        self._owners.setdefault(nft_index, set())

    def is_tracked(self, nft_index: int) -> bool:
        return nft_index in self._owners

    def record_ownership(self, nft_index: int, profile_index: int) -> bool:
        """
        Record that a profile owns an NFT.

        Args:
            nft_index: Identity index slot of the NFT
            profile_index: Identity index slot of the owning profile

        Returns:
            True if this was a new fact, False if it was already recorded

        Raises:
            UnknownEntityError: If the NFT was never tracked
        """
        owners = self._owners.get(nft_index)
        if owners is None:
            raise UnknownEntityError(f"Cannot record ownership for untracked NFT {nft_index}")
        if profile_index in owners:
            return False
        owners.add(profile_index)
        return True

    def owners(self, nft_index: int) -> FrozenSet[int]:
        """Return the owner set of an NFT (empty for contract-expanded NFTs)."""
        owners = self._owners.get(nft_index)
        if owners is None:
            raise UnknownEntityError(f"NFT {nft_index} is not tracked")
        return frozenset(owners)

    def is_owned(self, nft_index: int) -> bool:
        return bool(self._owners.get(nft_index))

    def owned_by(self, profile_index: int) -> FrozenSet[int]:
        """Return every NFT index the profile is recorded as owning."""
        return frozenset(nft for nft, owners in self._owners.items() if profile_index in owners)

    def reset(self) -> None:
        self._owners.clear()

    def __len__(self) -> int:
        return len(self._owners)
