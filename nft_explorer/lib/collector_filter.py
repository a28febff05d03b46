"""
Collector deduplication filter.

Removes candidate collector addresses that are already materialized as
profile nodes anywhere in the session, comparing case-insensitively.
"""

from dataclasses import dataclass
from typing import AbstractSet, List, Sequence


@dataclass
class CollectorFilterResult:
    """Accepted addresses (lowercased, input order) and how many were dropped."""

    accepted: List[str]
    duplicate_count: int


def filter_collectors(
    candidates: Sequence[str],
    known_addresses: AbstractSet[str],
) -> CollectorFilterResult:
    """
    Filter candidate collector addresses against known profile addresses.

    Only the known set is consulted; an address repeated inside the batch is
    kept each time it appears.

    Args:
        candidates: Addresses returned by the collector source
        known_addresses: Addresses already present as profile nodes

    Returns:
        CollectorFilterResult with accepted addresses and the duplicate count

    Examples:
        filter_collectors(["0x1", "0x2", "0x1"], {"0x2"})
        -> accepted=["0x1", "0x1"], duplicate_count=1
    """
    known = {address.lower() for address in known_addresses}
    accepted = [address.lower() for address in candidates if address and address.lower() not in known]
    return CollectorFilterResult(
        accepted=accepted,
        duplicate_count=len(candidates) - len(accepted),
    )
