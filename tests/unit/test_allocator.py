"""Tests for deterministic subnet selection."""

from __future__ import annotations

import ipaddress
import itertools

import pytest

from tenant_operator.errors import NoFreeRangeError
from tenant_operator.ipam import allocate, overlaps_any


class TestAllocate:
    """Test cases for allocate."""

    def test_empty_pool_picks_first_block(self) -> None:
        """Test that the first aligned block is chosen when nothing is taken."""
        assert allocate(["10.0.0.0/16"], [], 24) == ipaddress.IPv4Network("10.0.0.0/24")

    def test_picks_lowest_free_block(self) -> None:
        """Test that a gap below an existing allocation is used first."""
        subnet = allocate(["10.0.0.0/16"], ["10.0.1.0/24"], 24)
        assert subnet == ipaddress.IPv4Network("10.0.0.0/24")

    def test_skips_taken_blocks(self) -> None:
        """Test that taken blocks are skipped in address order."""
        subnet = allocate(["10.0.0.0/16"], ["10.0.0.0/24", "10.0.1.0/24"], 24)
        assert subnet == ipaddress.IPv4Network("10.0.2.0/24")

    def test_skips_larger_allocation(self) -> None:
        """Test that every block covered by a wider allocation is skipped."""
        subnet = allocate(["10.0.0.0/16"], ["10.0.0.0/22"], 24)
        assert subnet == ipaddress.IPv4Network("10.0.4.0/24")

    def test_smaller_allocation_blocks_whole_candidate(self) -> None:
        """Test that a narrow allocation inside a candidate disqualifies it."""
        subnet = allocate(["10.0.0.0/16"], ["10.0.0.128/25"], 24)
        assert subnet == ipaddress.IPv4Network("10.0.1.0/24")

    def test_fills_gap_next_to_wider_block(self) -> None:
        """Test that a node pool block fits beside a cluster block."""
        subnet = allocate(["10.0.0.0/16"], ["10.0.0.0/24", "10.0.1.0/25"], 25)
        assert subnet == ipaddress.IPv4Network("10.0.1.128/25")

    def test_pool_networks_searched_in_address_order(self) -> None:
        """Test that pool order does not influence the result."""
        pool = ["10.2.0.0/24", "10.1.0.0/24"]
        assert allocate(pool, [], 25) == ipaddress.IPv4Network("10.1.0.0/25")

    def test_spills_into_next_pool_network(self) -> None:
        """Test that a full pool network is passed over."""
        pool = ["10.1.0.0/24", "10.2.0.0/24"]
        subnet = allocate(pool, ["10.1.0.0/24"], 24)
        assert subnet == ipaddress.IPv4Network("10.2.0.0/24")

    def test_pool_network_narrower_than_request(self) -> None:
        """Test that pool networks smaller than the request are ignored."""
        pool = ["10.1.0.0/26", "10.2.0.0/16"]
        assert allocate(pool, [], 24) == ipaddress.IPv4Network("10.2.0.0/24")

    def test_exhausted_pool(self) -> None:
        """Test that a full pool raises NoFreeRangeError."""
        with pytest.raises(NoFreeRangeError, match="no free /24 subnet"):
            allocate(["10.0.0.0/23"], ["10.0.0.0/24", "10.0.1.0/24"], 24)

    def test_empty_pool(self) -> None:
        """Test that an empty pool raises NoFreeRangeError."""
        with pytest.raises(NoFreeRangeError):
            allocate([], [], 24)

    def test_deterministic(self) -> None:
        """Test that the input order of existing allocations does not matter."""
        existing = ["10.0.3.0/24", "10.0.0.0/24", "10.0.1.0/25"]
        results = {
            allocate(["10.0.0.0/16"], list(order), 24)
            for order in itertools.permutations(existing)
        }
        assert results == {ipaddress.IPv4Network("10.0.2.0/24")}

    def test_successive_allocations_never_overlap(self) -> None:
        """Test that allocating on top of previous results never overlaps."""
        taken: list[ipaddress.IPv4Network] = []
        for prefixlen in (24, 25, 24, 26, 25, 24, 26, 26):
            subnet = allocate(["10.0.0.0/20"], taken, prefixlen)
            assert not overlaps_any(subnet, taken)
            taken.append(subnet)


class TestOverlapsAny:
    """Test cases for overlaps_any."""

    def test_overlap(self) -> None:
        candidate = ipaddress.IPv4Network("10.0.0.0/24")
        assert overlaps_any(candidate, [ipaddress.IPv4Network("10.0.0.128/25")]) is True

    def test_no_overlap(self) -> None:
        candidate = ipaddress.IPv4Network("10.0.0.0/24")
        assert overlaps_any(candidate, [ipaddress.IPv4Network("10.0.1.0/24")]) is False
