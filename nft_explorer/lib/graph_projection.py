"""
Graph projection: derives the renderable node/link set from session stores.

``project_graph`` is a pure function of the stores. ``GraphProjector`` gives
the same result but memoizes on the session version and keeps the
contract-sibling links as an add-only view, so only NFTs added since the
previous projection are paired against the existing ones.

Link rules, unioned and deduplicated on (source, target, kind):

1. ownership: one link per (owner, NFT) in each non-empty owner set
2. contract-sibling: one link per pair of NFTs sharing a contract
3. collector: one link per (collector, NFT) whose collector profile is
   materialized, drawn with the ownership kind
"""

from typing import Dict, Iterable, List, Mapping, Optional, Set

from .identity_index import IdentityIndex, InvalidIdentityKey, profile_key
from .models import (
    CONTRACT_SIBLING_LINK,
    NFT,
    NFT_KIND,
    OWNERSHIP_LINK,
    PROFILE_KIND,
    CollectorSet,
    GraphView,
    LinkView,
    NodeId,
    NodeView,
    Profile,
)
from .ownership_ledger import OwnershipLedger
from .profile_resolver import identicon_url, shorten_address


def profile_node_id(index: int) -> str:
    return str(NodeId(PROFILE_KIND, index))


def nft_node_id(index: int) -> str:
    return str(NodeId(NFT_KIND, index))


def profile_node(index: int, profile: Profile) -> NodeView:
    return NodeView(
        id=profile_node_id(index),
        kind=PROFILE_KIND,
        display_label=profile.display_name or shorten_address(profile.address),
        image_url=profile.avatar_url or identicon_url(profile.address),
        entity=profile,
    )


def nft_node(index: int, nft: NFT) -> NodeView:
    if nft.name:
        label = nft.name
    else:
        label = f"{nft.collection_name or 'NFT'} #{nft.token_identifier}"
    return NodeView(
        id=nft_node_id(index),
        kind=NFT_KIND,
        display_label=label,
        image_url=nft.image_url or "",
        entity=nft,
    )


def _extend_sibling_links(
    nfts: IdentityIndex[NFT],
    start: int,
    members: Dict[str, List[int]],
    out: List[LinkView],
) -> None:
    """Pair every NFT from ``start`` onwards with earlier NFTs of its contract."""
    for index in range(start, len(nfts)):
        contract = nfts.get(index).contract_address.lower()
        group = members.setdefault(contract, [])
        for earlier in group:
            out.append(LinkView(nft_node_id(earlier), nft_node_id(index), CONTRACT_SIBLING_LINK))
        group.append(index)


def _ownership_links(
    profile_count: int,
    nft_count: int,
    ledger: OwnershipLedger,
) -> Iterable[LinkView]:
    for nft_index in range(nft_count):
        if not ledger.is_tracked(nft_index):
            continue
        for owner in sorted(ledger.owners(nft_index)):
            if owner < profile_count:
                yield LinkView(profile_node_id(owner), nft_node_id(nft_index), OWNERSHIP_LINK)


def _collector_links(
    profiles: IdentityIndex[Profile],
    nft_count: int,
    collector_sets: Mapping[int, CollectorSet],
) -> Iterable[LinkView]:
    for nft_index in sorted(collector_sets):
        if nft_index >= nft_count:
            continue
        for address in collector_sets[nft_index].addresses:
            try:
                profile_index = profiles.resolve(profile_key(address))
            except InvalidIdentityKey:
                continue
            # Not yet enriched: drawn once the profile is materialized
            if profile_index is not None:
                yield LinkView(profile_node_id(profile_index), nft_node_id(nft_index), OWNERSHIP_LINK)


def _assemble(
    profiles: IdentityIndex[Profile],
    nfts: IdentityIndex[NFT],
    ledger: OwnershipLedger,
    collector_sets: Mapping[int, CollectorSet],
    sibling_links: List[LinkView],
) -> GraphView:
    nodes = [profile_node(i, p) for i, p in profiles]
    nodes.extend(nft_node(i, n) for i, n in nfts)

    links: List[LinkView] = []
    seen: Set[LinkView] = set()
    candidates = (
        list(_ownership_links(len(profiles), len(nfts), ledger))
        + sibling_links
        + list(_collector_links(profiles, len(nfts), collector_sets))
    )
    for link in candidates:
        if link not in seen:
            seen.add(link)
            links.append(link)

    return GraphView(nodes=nodes, links=links)


def project_graph(
    profiles: IdentityIndex[Profile],
    nfts: IdentityIndex[NFT],
    ledger: OwnershipLedger,
    collector_sets: Mapping[int, CollectorSet],
) -> GraphView:
    """
    Build the node/link set for the current stores.

    Args:
        profiles: Materialized profiles (primary and collectors)
        nfts: Every NFT seen in the session
        ledger: Owner sets per NFT
        collector_sets: Accepted collector addresses per NFT index

    Returns:
        GraphView with stable node ids and no dangling links
    """
    sibling_links: List[LinkView] = []
    _extend_sibling_links(nfts, 0, {}, sibling_links)
    return _assemble(profiles, nfts, ledger, collector_sets, sibling_links)


class GraphProjector:
    """Memoized, incrementally maintained graph projection."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._version: Optional[int] = None
        self._cached: Optional[GraphView] = None
        self._sibling_links: List[LinkView] = []
        self._contract_members: Dict[str, List[int]] = {}
        self._sibling_cursor = 0

    def project(
        self,
        profiles: IdentityIndex[Profile],
        nfts: IdentityIndex[NFT],
        ledger: OwnershipLedger,
        collector_sets: Mapping[int, CollectorSet],
        version: int,
    ) -> GraphView:
        """
        Return the projection for ``version``, recomputing only when it changed.

        NFT indices only ever grow within a session, so sibling links computed
        for earlier NFTs stay valid.
        """
        if self._cached is not None and self._version == version:
            return self._cached

        if len(nfts) < self._sibling_cursor:
            # Stores were reset underneath us
            self.reset()

        _extend_sibling_links(nfts, self._sibling_cursor, self._contract_members, self._sibling_links)
        self._sibling_cursor = len(nfts)

        self._cached = _assemble(profiles, nfts, ledger, collector_sets, self._sibling_links)
        self._version = version
        return self._cached
