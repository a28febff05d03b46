"""
Data models for the NFT collector graph.

This module defines the profile and NFT entities accumulated during an
exploration session, the page types returned by data sources, and the
node/link views handed to the rendering layer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


PROFILE_KIND = "profile"
NFT_KIND = "nft"

OWNERSHIP_LINK = "ownership"
CONTRACT_SIBLING_LINK = "contract-sibling"


@dataclass
class Profile:
    """
    A wallet profile: either the searched subject or a discovered collector.

    The address is the identity and never changes once the profile has been
    admitted to a session. Display fields may be filled in later.
    """

    address: str  # Lowercase hex
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_primary: bool = False
    bio: Optional[str] = None
    website: Optional[str] = None
    joined_date: Optional[str] = None
    banner_image_url: Optional[str] = None

    def merge_display(self, other: "Profile") -> None:
        """Copy display fields from another profile for the same address."""
        for name in ("display_name", "avatar_url", "bio", "website", "joined_date", "banner_image_url"):
            value = getattr(other, name)
            if value:
                setattr(self, name, value)


@dataclass
class NFT:
    """Represents a distinct token, identified by contract and token identifier."""

    contract_address: str
    token_identifier: str  # Opaque decimal string, never parsed
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    collection_name: Optional[str] = None
    external_url: Optional[str] = None
    token_standard: Optional[str] = None  # erc721, erc1155


@dataclass
class NFTPage:
    """One page of NFTs from an owner or contract listing."""

    items: List[NFT]
    next_page_token: Optional[str] = None


@dataclass
class CollectorPage:
    """One page of owner addresses for a single token."""

    owners: List[str]
    next_page_token: Optional[str] = None
    has_more: bool = False


@dataclass
class PaginationState:
    """Continuation state for one paginated collection."""

    cursor: Optional[str]
    has_more: bool


@dataclass
class CollectorSet:
    """
    Collectors discovered so far for one NFT.

    Addresses are appended page by page in the order the source returned
    them. Duplicates filtered out against already known profiles are only
    counted.
    """

    addresses: List[str] = field(default_factory=list)
    filtered_duplicates: int = 0


@dataclass(frozen=True)
class NodeId:
    """Tagged node identity: a kind plus the entity's identity index slot."""

    kind: str
    index: int

    def __str__(self) -> str:
        return f"{self.kind}:{self.index}"


@dataclass
class NodeView:
    """A renderable node."""

    id: str
    kind: str  # "profile" or "nft"
    display_label: str
    image_url: str
    entity: Any  # Profile or NFT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "displayLabel": self.display_label,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class LinkView:
    """A renderable link. Hashable so link sets can be deduplicated."""

    source_id: str
    target_id: str
    kind: str  # "ownership" or "contract-sibling"

    def to_dict(self) -> Dict[str, str]:
        return {
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "kind": self.kind,
        }


@dataclass
class GraphView:
    """The node/link set produced by graph projection."""

    nodes: List[NodeView] = field(default_factory=list)
    links: List[LinkView] = field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]


@dataclass
class IngestResult:
    """
    Outcome of merging one page of NFTs into a session.

    Separates newly admitted NFTs from ones that were already known.
    """

    new_nft_indices: List[int] = field(default_factory=list)
    existing_nft_indices: List[int] = field(default_factory=list)
    skipped: int = 0  # Records rejected for malformed identity keys
    has_more: bool = False


@dataclass
class CollectorLoadResult:
    """Outcome of loading one page of collectors for an NFT."""

    nft_index: int
    accepted: List[str] = field(default_factory=list)
    duplicate_count: int = 0
    new_profile_indices: List[int] = field(default_factory=list)
    has_more: bool = False
