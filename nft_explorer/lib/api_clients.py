"""
HTTP clients for the marketplace and ownership-indexing providers.

OpenSea supplies profiles and NFT listings (by account and by contract);
Moralis supplies the owners of a single token. Both clients share the same
rate limit handling: HTTP 429 and 5xx responses are retried with jittered
exponential backoff before an error is raised.
"""

import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from .models import NFT, CollectorPage, NFTPage, Profile


logger = logging.getLogger(__name__)

OPENSEA_BASE_URL = "https://api.opensea.io/api/v2"
MORALIS_BASE_URL = "https://deep-index.moralis.io/api/v2.2"

OPENSEA_CHAIN = "ethereum"
MORALIS_CHAIN = "eth"

# Retry configuration
DEFAULT_INITIAL_DELAY = 1.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_DELAY = 16.0  # seconds
DEFAULT_JITTER = 0.1  # ±10%
DEFAULT_TIMEOUT = 30.0  # seconds


class ProviderError(Exception):
    """Exception raised for data provider errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(ProviderError):
    """Exception raised when rate limit is exceeded and retries are exhausted."""

    pass


class ProfileNotFound(ProviderError):
    """Exception raised when the provider has no profile for an address."""

    pass


class BaseAPIClient:
    """
    Shared request handling for provider clients.

    Subclasses set ``base_url`` and ``auth_header`` and build their endpoint
    paths; this class handles authentication headers, retries and error
    translation.
    """

    base_url = ""
    auth_header = ""
    provider_name = ""

    def __init__(
        self,
        api_key: str,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_delay: float = DEFAULT_MAX_DELAY,
        jitter: float = DEFAULT_JITTER,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the client.

        Args:
            api_key: Provider API key
            initial_delay: Initial delay in seconds for retry backoff
            backoff_multiplier: Multiplier for exponential backoff
            max_retries: Maximum number of retry attempts
            max_delay: Maximum delay cap in seconds
            jitter: Jitter factor (±percentage) to randomize delays
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self.initial_delay = initial_delay
        self.backoff_multiplier = backoff_multiplier
        self.max_retries = max_retries
        self.max_delay = max_delay
        self.jitter = jitter
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({self.auth_header: api_key, "Accept": "application/json"})

    def _sanitize_error_message(self, message: str) -> str:
        """Remove API key from error messages to prevent credential leakage."""
        if not self.api_key:
            return message
        return message.replace(self.api_key, "[REDACTED]")

    def _apply_jitter(self, delay: float) -> float:
        """Apply random jitter to a delay value."""
        jitter_range = delay * self.jitter
        return delay + random.uniform(-jitter_range, jitter_range)

    def _backoff(self, delay: float, reason: str) -> float:
        sleep_time = self._apply_jitter(min(delay, self.max_delay))
        logger.info("%s: %s, retrying in %.1fs", self.provider_name, reason, sleep_time)
        time.sleep(sleep_time)
        return delay * self.backoff_multiplier

    def _execute_with_retry(
        self,
        request_func: Callable[[], requests.Response],
    ) -> requests.Response:
        """
        Execute a request function with retry logic for rate limits and server errors.

        Args:
            request_func: A callable that returns a requests.Response

        Returns:
            The successful response

        Raises:
            ProviderError: For API errors after retries exhausted
            RateLimited: When rate limit retries are exhausted
        """
        delay = self.initial_delay

        for attempt in range(self.max_retries + 1):
            try:
                response = request_func()

                if response.status_code == 429:
                    if attempt < self.max_retries:
                        delay = self._backoff(delay, "rate limited")
                        continue
                    raise RateLimited(
                        f"{self.provider_name} rate limit exceeded and max retries reached",
                        status_code=429,
                    )

                if response.status_code in (401, 403):
                    raise ProviderError(
                        f"{self.provider_name} rejected the API key",
                        status_code=response.status_code,
                    )

                if response.status_code >= 500:
                    if attempt < self.max_retries:
                        delay = self._backoff(delay, f"server error {response.status_code}")
                        continue
                    raise ProviderError(
                        f"{self.provider_name} server error: {response.status_code}",
                        status_code=response.status_code,
                    )

                response.raise_for_status()
                return response

            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                sanitized_msg = self._sanitize_error_message(str(e))
                raise ProviderError(f"Request failed: {sanitized_msg}", status_code=status) from e

            except requests.RequestException as e:
                if attempt < self.max_retries:
                    delay = self._backoff(delay, "connection error")
                    continue
                sanitized_msg = self._sanitize_error_message(str(e))
                raise ProviderError(f"Request failed: {sanitized_msg}") from e

        raise ProviderError("Max retries exceeded")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Make a GET request with automatic retry.

        Args:
            path: Endpoint path below ``base_url``
            params: Query parameters (None values are dropped)

        Returns:
            The decoded JSON response
        """
        url = f"{self.base_url}/{path}"
        query = {k: v for k, v in (params or {}).items() if v is not None}

        response = self._execute_with_retry(
            lambda: self.session.get(url, params=query, timeout=self.timeout)
        )
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{self.provider_name} returned invalid JSON") from e


class OpenSeaClient(BaseAPIClient):
    """OpenSea API v2 client for profiles and NFT listings."""

    base_url = OPENSEA_BASE_URL
    auth_header = "X-API-KEY"
    provider_name = "OpenSea"

    def get_account(self, address_or_username: str) -> Profile:
        """
        Get the marketplace profile for an address or username.

        Args:
            address_or_username: Wallet address or OpenSea username

        Returns:
            Profile with the canonical (lowercase) address

        Raises:
            ProfileNotFound: If the account does not exist
        """
        try:
            data = self._get(f"accounts/{address_or_username}")
        except ProviderError as e:
            if e.status_code in (400, 404):
                raise ProfileNotFound(
                    f"No OpenSea profile for {address_or_username}", status_code=e.status_code
                ) from e
            raise

        address = data.get("address") or ""
        if not address:
            raise ProfileNotFound(f"No OpenSea profile for {address_or_username}")

        return Profile(
            address=address.lower(),
            display_name=data.get("username") or None,
            avatar_url=data.get("profile_image_url") or None,
            bio=data.get("bio") or None,
            website=data.get("website") or None,
            joined_date=data.get("joined_date") or None,
            banner_image_url=data.get("banner_image_url") or None,
        )

    def list_nfts_by_account(self, address: str, limit: int, next_token: Optional[str] = None) -> NFTPage:
        """
        Get one page of NFTs held by an account.

        Args:
            address: Wallet address
            limit: Page size
            next_token: Continuation token from the previous page

        Returns:
            NFTPage with the items and the next token, if any
        """
        result = self._get(
            f"chain/{OPENSEA_CHAIN}/account/{address}/nfts",
            {"limit": limit, "next": next_token},
        )
        return self._parse_nft_page(result)

    def list_nfts_by_contract(self, contract: str, limit: int, next_token: Optional[str] = None) -> NFTPage:
        """Get one page of NFTs minted by a contract."""
        result = self._get(
            f"chain/{OPENSEA_CHAIN}/contract/{contract}/nfts",
            {"limit": limit, "next": next_token},
        )
        return self._parse_nft_page(result)

    @staticmethod
    def _parse_nft(item: Dict[str, Any]) -> NFT:
        # A null identifier must stay empty so the record is rejected on ingest
        identifier = item.get("identifier")
        return NFT(
            contract_address=item.get("contract") or "",
            token_identifier=str(identifier) if identifier is not None else "",
            name=item.get("name"),
            description=item.get("description"),
            image_url=item.get("image_url") or item.get("display_image_url"),
            collection_name=item.get("collection"),
            external_url=item.get("opensea_url"),
            token_standard=item.get("token_standard"),
        )

    def _parse_nft_page(self, result: Dict[str, Any]) -> NFTPage:
        items: List[NFT] = [self._parse_nft(item) for item in result.get("nfts", [])]
        return NFTPage(items=items, next_page_token=result.get("next") or None)


class MoralisClient(BaseAPIClient):
    """Moralis EVM API client for token ownership lookups."""

    base_url = MORALIS_BASE_URL
    auth_header = "X-API-Key"
    provider_name = "Moralis"

    def get_nft_token_id_owners(
        self,
        contract: str,
        token_id: str,
        limit: int,
        cursor: Optional[str] = None,
    ) -> CollectorPage:
        """
        Get one page of owners of a token.

        Args:
            contract: Token contract address
            token_id: Token identifier (decimal string)
            limit: Page size
            cursor: Continuation cursor from the previous page

        Returns:
            CollectorPage; ``has_more`` is set whenever a cursor is returned
        """
        result = self._get(
            f"nft/{contract}/{token_id}/owners",
            {
                "chain": MORALIS_CHAIN,
                "format": "decimal",
                "limit": limit,
                "cursor": cursor,
            },
        )

        owners = [item.get("owner_of", "") for item in result.get("result") or []]
        next_cursor = result.get("cursor") or None

        return CollectorPage(
            owners=[owner for owner in owners if owner],
            next_page_token=next_cursor,
            has_more=bool(next_cursor),
        )
