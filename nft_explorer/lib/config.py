"""
Explorer configuration.

Settings come from the environment (optionally a ``.env`` file) and can be
overridden from the command line. Page sizes are validated here; the graph
core passes them through to the data sources unchanged.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


MIN_FETCH_LIMIT = 1
MAX_FETCH_LIMIT = 25

DEFAULT_NFT_FETCH_LIMIT = 10
DEFAULT_COLLECTOR_FETCH_LIMIT = 5
DEFAULT_CONTRACT_EXPAND_LIMIT = 10


@dataclass
class ExplorerSettings:
    """Page sizes, API keys and transport retry settings."""

    opensea_api_key: str = ""
    moralis_api_key: str = ""
    nft_fetch_limit: int = DEFAULT_NFT_FETCH_LIMIT
    collector_fetch_limit: int = DEFAULT_COLLECTOR_FETCH_LIMIT
    contract_expand_limit: int = DEFAULT_CONTRACT_EXPAND_LIMIT
    max_retries: int = 3
    initial_delay: float = 1.0

    def validate(self, require_keys: bool = True) -> None:
        """
        Check limits and credentials.

        Raises:
            ValueError: If a page size is outside 1-25 or a key is missing
        """
        for name in ("nft_fetch_limit", "collector_fetch_limit", "contract_expand_limit"):
            value = getattr(self, name)
            if not MIN_FETCH_LIMIT <= value <= MAX_FETCH_LIMIT:
                raise ValueError(
                    f"{name} must be between {MIN_FETCH_LIMIT} and {MAX_FETCH_LIMIT}, got {value}"
                )

        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")

        if require_keys:
            if not self.opensea_api_key:
                raise ValueError("OpenSea API key not configured (set OPENSEA_API_KEY)")
            if not self.moralis_api_key:
                raise ValueError("Moralis API key not configured (set MORALIS_API_KEY)")

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ExplorerSettings":
        """
        Build settings from environment variables.

        Reads OPENSEA_API_KEY, MORALIS_API_KEY, NFT_FETCH_LIMIT,
        COLLECTOR_FETCH_LIMIT and CONTRACT_EXPAND_LIMIT, loading a ``.env``
        file first when present. Values already in the environment win.
        """
        load_dotenv(dotenv_path)

        return cls(
            opensea_api_key=os.getenv("OPENSEA_API_KEY", ""),
            moralis_api_key=os.getenv("MORALIS_API_KEY", ""),
            nft_fetch_limit=_int_env("NFT_FETCH_LIMIT", DEFAULT_NFT_FETCH_LIMIT),
            collector_fetch_limit=_int_env("COLLECTOR_FETCH_LIMIT", DEFAULT_COLLECTOR_FETCH_LIMIT),
            contract_expand_limit=_int_env("CONTRACT_EXPAND_LIMIT", DEFAULT_CONTRACT_EXPAND_LIMIT),
        )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
