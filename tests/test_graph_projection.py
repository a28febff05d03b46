"""
Unit tests for graph projection.

Tests follow the Given/When/Then pattern for clarity.
"""

from nft_explorer.lib.graph_projection import GraphProjector, project_graph
from nft_explorer.lib.identity_index import IdentityIndex, nft_key, profile_key
from nft_explorer.lib.models import CollectorSet, LinkView, Profile
from nft_explorer.lib.ownership_ledger import OwnershipLedger


def build_stores(nft_factory, nft_specs, profile_addresses=("0xprimary",)):
    """Admit profiles and NFTs; every NFT is tracked with no owners."""
    profiles = IdentityIndex()
    for address in profile_addresses:
        profiles.admit(profile_key(address), Profile(address=address))

    nfts = IdentityIndex()
    ledger = OwnershipLedger()
    for contract, token_id in nft_specs:
        index = nfts.admit(nft_key(contract, token_id), nft_factory(contract, token_id))
        ledger.track(index)
    return profiles, nfts, ledger


def assert_no_dangling_links(graph):
    node_ids = set(graph.node_ids())
    for link in graph.links:
        assert link.source_id in node_ids
        assert link.target_id in node_ids


class TestProjectGraph:
    """Tests for the pure project_graph function."""

    def test_nodes_use_tagged_identity(self, nft_factory):
        """
        Given one profile and two NFTs
        When projecting
        Then node ids should be tagged with their kind and index
        """
        # Given
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "1"), ("0xbb", "2")])

        # When
        graph = project_graph(profiles, nfts, ledger, {})

        # Then
        assert graph.node_ids() == ["profile:0", "nft:0", "nft:1"]
        assert [node.kind for node in graph.nodes] == ["profile", "nft", "nft"]

    def test_ownership_links_for_every_owner(self, nft_factory):
        """
        Given an NFT owned by two profiles
        When projecting
        Then one ownership link per owner should be produced
        """
        # Given
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "1")], ("0xa", "0xb"))
        ledger.record_ownership(0, 0)
        ledger.record_ownership(0, 1)

        # When
        graph = project_graph(profiles, nfts, ledger, {})

        # Then
        assert graph.links == [
            LinkView("profile:0", "nft:0", "ownership"),
            LinkView("profile:1", "nft:0", "ownership"),
        ]

    def test_contract_expanded_nft_has_no_ownership_link(self, nft_factory):
        """
        Given an NFT with an empty owner set
        When projecting
        Then it should appear as a node without ownership links
        """
        # Given
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "1")])

        # When
        graph = project_graph(profiles, nfts, ledger, {})

        # Then
        assert "nft:0" in graph.node_ids()
        assert [link for link in graph.links if link.kind == "ownership"] == []

    def test_contract_sibling_links_for_each_pair(self, nft_factory):
        """
        Given three NFTs of one contract and one of another
        When projecting
        Then each pair within the shared contract should be linked once
        """
        # Given
        profiles, nfts, ledger = build_stores(
            nft_factory, [("0xaa", "1"), ("0xAA", "2"), ("0xbb", "3"), ("0xaa", "4")]
        )

        # When
        graph = project_graph(profiles, nfts, ledger, {})

        # Then
        siblings = {(l.source_id, l.target_id) for l in graph.links if l.kind == "contract-sibling"}
        assert siblings == {("nft:0", "nft:1"), ("nft:0", "nft:3"), ("nft:1", "nft:3")}

    def test_collector_links_only_for_materialized_profiles(self, nft_factory):
        """
        Given a collector set with one materialized and one pending collector
        When projecting
        Then only the materialized collector should be linked
        """
        # Given
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "1")], ("0xprimary", "0xc1"))
        collectors = {0: CollectorSet(addresses=["0xc1", "0xpending"])}

        # When
        graph = project_graph(profiles, nfts, ledger, collectors)

        # Then
        assert graph.links == [LinkView("profile:1", "nft:0", "ownership")]
        assert_no_dangling_links(graph)

    def test_links_are_deduplicated(self, nft_factory):
        """
        Given a collector that is also a recorded owner, listed twice
        When projecting
        Then a single ownership link should remain
        """
        # Given
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "1")], ("0xprimary", "0xc1"))
        ledger.record_ownership(0, 1)
        collectors = {0: CollectorSet(addresses=["0xc1", "0xc1"])}

        # When
        graph = project_graph(profiles, nfts, ledger, collectors)

        # Then
        assert graph.links == [LinkView("profile:1", "nft:0", "ownership")]

    def test_node_labels_fall_back_when_metadata_missing(self, nft_factory):
        """
        Given a profile without a name and an NFT without a name
        When projecting
        Then labels should be derived from the address and token identifier
        """
        # Given
        address = "0x1234567890abcdef1234567890abcdef12345678"
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "42")], (address,))
        nfts.get(0).name = None

        # When
        graph = project_graph(profiles, nfts, ledger, {})

        # Then
        assert graph.nodes[0].display_label == "0x1234...5678"
        assert graph.nodes[0].image_url.startswith("https://api.dicebear.com/")
        assert graph.nodes[1].display_label == "Test Collection #42"


class TestGraphProjector:
    """Tests for the memoized, incremental projector."""

    def test_returns_cached_view_for_unchanged_version(self, nft_factory):
        """
        Given a projection computed at version 1
        When projecting again at version 1
        Then the identical object should be returned
        """
        # Given
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "1")])
        projector = GraphProjector()
        first = projector.project(profiles, nfts, ledger, {}, version=1)

        # When
        second = projector.project(profiles, nfts, ledger, {}, version=1)

        # Then
        assert second is first

    def test_incremental_siblings_match_full_recomputation(self, nft_factory):
        """
        Given NFTs added in two batches between projections
        When projecting incrementally
        Then the result should equal a from-scratch projection
        """
        # Given
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "1"), ("0xbb", "2")])
        projector = GraphProjector()
        projector.project(profiles, nfts, ledger, {}, version=1)

        for contract, token_id in [("0xaa", "3"), ("0xbb", "4"), ("0xaa", "5")]:
            index = nfts.admit(nft_key(contract, token_id), nft_factory(contract, token_id))
            ledger.track(index)
            ledger.record_ownership(index, 0)

        # When
        incremental = projector.project(profiles, nfts, ledger, {}, version=2)
        full = project_graph(profiles, nfts, ledger, {})

        # Then
        assert incremental.links == full.links
        assert incremental.node_ids() == full.node_ids()
        assert_no_dangling_links(incremental)

    def test_rebuilds_after_stores_are_reset(self, nft_factory):
        """
        Given a projector that has seen three NFTs
        When the stores are reset and repopulated with one NFT
        Then no stale sibling links should survive
        """
        # Given
        profiles, nfts, ledger = build_stores(nft_factory, [("0xaa", "1"), ("0xaa", "2"), ("0xaa", "3")])
        projector = GraphProjector()
        projector.project(profiles, nfts, ledger, {}, version=1)
        nfts.reset()
        ledger.reset()
        nfts.admit(nft_key("0xcc", "9"), nft_factory("0xcc", "9"))
        ledger.track(0)

        # When
        graph = projector.project(profiles, nfts, ledger, {}, version=2)

        # Then
        assert graph.links == []
        assert_no_dangling_links(graph)
