#!/usr/bin/env python3
"""
Explore the NFT collector graph around a wallet.

This script loads a wallet's marketplace profile and NFTs, discovers other
collectors of those NFTs, optionally expands the NFTs' contracts, and writes
the resulting node/link graph as JSON for a force-directed renderer.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from nft_explorer.lib.api_clients import MoralisClient, OpenSeaClient, ProviderError
from nft_explorer.lib.config import ExplorerSettings
from nft_explorer.lib.data_sources import ProviderDataSource
from nft_explorer.lib.explorer import GraphExplorer
from nft_explorer.lib.formatters import summarize_graph, write_graph_json


def log(message: str) -> None:
    """Print a progress message to stderr."""
    print(f"[explorer] {message}", file=sys.stderr)


def build_settings(parsed_args: argparse.Namespace, base: Optional[ExplorerSettings] = None) -> ExplorerSettings:
    """
    Apply command line overrides on top of environment settings.

    Args:
        parsed_args: Parsed CLI arguments
        base: Settings to start from (read from the environment if None)

    Returns:
        Validated ExplorerSettings

    Raises:
        ValueError: If a limit is out of range or an API key is missing
    """
    settings = base or ExplorerSettings.from_env()

    if parsed_args.opensea_api_key:
        settings.opensea_api_key = parsed_args.opensea_api_key
    if parsed_args.moralis_api_key:
        settings.moralis_api_key = parsed_args.moralis_api_key
    if parsed_args.nft_limit is not None:
        settings.nft_fetch_limit = parsed_args.nft_limit
    if parsed_args.collector_limit is not None:
        settings.collector_fetch_limit = parsed_args.collector_limit
    if parsed_args.contract_limit is not None:
        settings.contract_expand_limit = parsed_args.contract_limit

    settings.validate()
    return settings


async def explore(
    explorer: GraphExplorer,
    address: str,
    pages: int = 1,
    collectors: int = 0,
    expand_contracts: bool = False,
) -> List[str]:
    """
    Run a scripted exploration.

    Args:
        explorer: Explorer bound to a fresh session
        address: Wallet address or marketplace username to start from
        pages: Number of NFT pages to load for the starting profile
        collectors: Number of the profile's NFTs to load collectors for
        expand_contracts: Also load one page of each seen contract

    Returns:
        Provider error messages; the graph keeps everything loaded before a failure
    """
    errors: List[str] = []

    try:
        primary_index = await explorer.load_profile(address, load_collection=False)
    except ProviderError as e:
        return [f"Failed to fetch profile: {e}"]

    session = explorer.session
    primary = session.profiles.get(primary_index)

    try:
        await explorer.load_collection(primary.address)
        for _ in range(max(pages, 1) - 1):
            if await explorer.load_more_nfts(primary.address) is None:
                break
    except ProviderError as e:
        errors.append(f"Failed to fetch NFTs: {e}")

    targets = sorted(session.ledger.owned_by(primary_index))[:collectors]
    if targets:
        log(f"Loading collectors for {len(targets)} NFT(s)")
        results = await asyncio.gather(
            *(explorer.load_collectors(nft_index) for nft_index in targets),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, ProviderError):
                errors.append(f"Failed to load collectors: {result}")
            elif isinstance(result, BaseException):
                raise result

    if expand_contracts:
        contracts = list(dict.fromkeys(nft.contract_address.lower() for _, nft in session.nfts))
        log(f"Expanding {len(contracts)} contract(s)")
        for contract in contracts:
            try:
                await explorer.expand_contract(contract)
            except ProviderError as e:
                errors.append(f"Failed to expand contract {contract}: {e}")

    return errors


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = argparse.ArgumentParser(
        description="Explore the NFT ownership graph around a wallet and write it as JSON.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # First page of NFTs plus collectors of three of them, to stdout
  %(prog)s --address 0x0f0eae91990140c560d4156db4f00c854dc8f09e --collectors 3

  # Two NFT pages, expand contracts, save to file
  %(prog)s --address 0x... --pages 2 --expand-contracts --output graph.json
        """,
    )

    parser.add_argument(
        "--address",
        required=True,
        help="Wallet address or OpenSea username to start from",
    )
    parser.add_argument("--pages", type=int, default=1, help="NFT pages to load for the profile")
    parser.add_argument(
        "--collectors",
        type=int,
        default=0,
        help="Number of the profile's NFTs to load collectors for",
    )
    parser.add_argument(
        "--expand-contracts",
        action="store_true",
        help="Load one page of NFTs for every contract seen",
    )
    parser.add_argument("--nft-limit", type=int, help="NFTs per fetch (1-25)")
    parser.add_argument("--collector-limit", type=int, help="Collectors per fetch (1-25)")
    parser.add_argument("--contract-limit", type=int, help="Contract NFTs per fetch (1-25)")
    parser.add_argument("--opensea-api-key", help="OpenSea API key (default: OPENSEA_API_KEY)")
    parser.add_argument("--moralis-api-key", help="Moralis API key (default: MORALIS_API_KEY)")
    parser.add_argument(
        "--output",
        help="Output file path (timestamp auto-appended). If not specified, outputs to stdout.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        settings = build_settings(parsed_args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    opensea = OpenSeaClient(
        settings.opensea_api_key,
        max_retries=settings.max_retries,
        initial_delay=settings.initial_delay,
    )
    moralis = MoralisClient(
        settings.moralis_api_key,
        max_retries=settings.max_retries,
        initial_delay=settings.initial_delay,
    )
    explorer = GraphExplorer(ProviderDataSource(opensea, moralis), settings)

    errors = asyncio.run(
        explore(
            explorer,
            parsed_args.address,
            pages=parsed_args.pages,
            collectors=parsed_args.collectors,
            expand_contracts=parsed_args.expand_contracts,
        )
    )
    for error in errors:
        log(f"ERROR: {error}")

    if explorer.session.primary_profile is None:
        return 1

    graph = explorer.graph()
    output_file = write_graph_json(graph, parsed_args.output)

    counts = summarize_graph(graph)
    log(
        f"Graph: {counts.get('profile', 0)} profile(s), {counts.get('nft', 0)} NFT(s), "
        f"{counts.get('ownership', 0)} ownership link(s), "
        f"{counts.get('contract-sibling', 0)} contract link(s)"
    )
    if output_file:
        print(f"\nGraph written to: {output_file}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
