"""
Identity index mapping content-derived keys to stable entity slots.

NFTs are keyed by ``contract:tokenIdentifier`` and profiles by their
lowercased address. Admitting the same key twice never creates a second
entity; the slot returned on first admission is stable for the session.
"""

from typing import Dict, Generic, Iterator, List, Optional, Tuple, TypeVar


T = TypeVar("T")


class InvalidIdentityKey(ValueError):
    """Raised when an entity key is empty or missing one of its parts."""

    pass


class UnknownEntityError(LookupError):
    """Raised when a store is asked about an index it never admitted."""

    pass


def profile_key(address: Optional[str]) -> str:
    """
    Build the identity key for a profile.

    Args:
        address: Wallet address in any case

    Returns:
        The lowercased, whitespace-trimmed address

    Raises:
        InvalidIdentityKey: If the address is empty
    """
    if not address or not address.strip():
        raise InvalidIdentityKey("Profile address is required")
    return address.strip().lower()


def nft_key(contract_address: Optional[str], token_identifier: Optional[str]) -> str:
    """
    Build the identity key for an NFT.

    The contract address is lowercased like any other address. The token
    identifier is kept verbatim as an opaque string.

    Examples:
        nft_key("0xAA", "7") -> "0xaa:7"

    Raises:
        InvalidIdentityKey: If either part is missing or empty
    """
    if not contract_address or not contract_address.strip():
        raise InvalidIdentityKey("NFT contract address is required")
    if token_identifier is None or not str(token_identifier).strip():
        raise InvalidIdentityKey(f"NFT token identifier is required (contract {contract_address})")
    return f"{contract_address.strip().lower()}:{str(token_identifier).strip()}"


class IdentityIndex(Generic[T]):
    """
    Sequential slot allocator keyed by identity key.

    Slots are assigned 0, 1, 2, ... in admission order, so they double as
    stable node indices for graph projection.
    """

    def __init__(self) -> None:
        self._slots: Dict[str, int] = {}
        self._entities: List[T] = []
        self._keys: List[str] = []

    def resolve(self, key: str) -> Optional[int]:
        """Return the slot for a key, or None if it was never admitted."""
        return self._slots.get(key)

    def admit(self, key: str, entity: T) -> int:
        """
        Admit an entity under a key.

        Args:
            key: Identity key (see ``nft_key`` / ``profile_key``)
            entity: Entity to store if the key is new

        Returns:
            The new slot, or the existing slot if the key was already admitted
            (in which case ``entity`` is discarded)

        Raises:
            InvalidIdentityKey: If the key is empty
        """
        if not key:
            raise InvalidIdentityKey("Identity key is empty")

        existing = self._slots.get(key)
        if existing is not None:
            return existing

        index = len(self._entities)
        self._slots[key] = index
        self._entities.append(entity)
        self._keys.append(key)
        return index

    def get(self, index: int) -> T:
        """Return the entity stored at a slot."""
        if index < 0 or index >= len(self._entities):
            raise UnknownEntityError(f"No entity at index {index}")
        return self._entities[index]

    def key_of(self, index: int) -> str:
        """Return the identity key stored at a slot."""
        if index < 0 or index >= len(self._keys):
            raise UnknownEntityError(f"No entity at index {index}")
        return self._keys[index]

    def keys(self) -> List[str]:
        return list(self._keys)

    def reset(self) -> None:
        self._slots.clear()
        self._entities.clear()
        self._keys.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Tuple[int, T]]:
        return iter(list(enumerate(self._entities)))
