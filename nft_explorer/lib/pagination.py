"""
Pagination cursor manager.

Tracks the opaque continuation token and has-more flag of every paginated
collection seen in a session: a wallet's NFT list, an NFT's collector list
and a contract's NFT list. Pure state container, performs no I/O.
"""

from typing import Dict, Optional, Tuple

from .models import PaginationState


Subject = Tuple[str, str]

OWNER_NFTS = "owner-nfts"
NFT_COLLECTORS = "nft-collectors"
CONTRACT_NFTS = "contract-nfts"


def owner_subject(address_key: str) -> Subject:
    return (OWNER_NFTS, address_key)


def collector_subject(nft_identity_key: str) -> Subject:
    return (NFT_COLLECTORS, nft_identity_key)


def contract_subject(contract_key: str) -> Subject:
    return (CONTRACT_NFTS, contract_key)


class CursorManager:
    """Per-subject pagination state."""

    def __init__(self) -> None:
        self._states: Dict[Subject, PaginationState] = {}

    def get_state(self, subject: Subject) -> Optional[PaginationState]:
        """Return the state for a subject, or None if its first page was never fetched."""
        return self._states.get(subject)

    def set_state(self, subject: Subject, cursor: Optional[str], has_more: bool) -> None:
        self._states[subject] = PaginationState(cursor=cursor, has_more=has_more)

    def can_fetch_more(self, subject: Subject) -> bool:
        """True if nothing was fetched yet or the last page reported more."""
        state = self._states.get(subject)
        return state is None or state.has_more

    def next_cursor(self, subject: Subject) -> Optional[str]:
        state = self._states.get(subject)
        return state.cursor if state else None

    def reset(self) -> None:
        self._states.clear()

    def __len__(self) -> int:
        return len(self._states)
