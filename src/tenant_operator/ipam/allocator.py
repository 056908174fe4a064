"""Deterministic free subnet selection.

The allocator is a pure function of its inputs. Two passes racing for the
same pool compute the same candidate; the loser's commit is rejected and its
next pass sees the winner's record among the existing allocations.
"""

from __future__ import annotations

import ipaddress
from typing import Iterable, Union

from ..errors import NoFreeRangeError

NetworkLike = Union[str, ipaddress.IPv4Network]


def to_network(value: NetworkLike) -> ipaddress.IPv4Network:
    if isinstance(value, ipaddress.IPv4Network):
        return value
    return ipaddress.IPv4Network(value, strict=True)


def overlaps_any(candidate: ipaddress.IPv4Network, networks: Iterable[ipaddress.IPv4Network]) -> bool:
    return any(candidate.overlaps(network) for network in networks)


def allocate(
    pool: Iterable[NetworkLike],
    existing: Iterable[NetworkLike],
    prefixlen: int,
) -> ipaddress.IPv4Network:
    """Pick the lowest free subnet of the requested size.

    Pool networks are searched in address order. Within a network,
    candidates are aligned blocks of ``prefixlen``; a candidate overlapping an
    existing allocation is skipped together with every block the allocation
    covers.

    Args:
        pool: Networks subnets may be drawn from
        existing: Subnets already committed by any entity
        prefixlen: Prefix length of the subnet to allocate

    Returns:
        The selected subnet

    Raises:
        NoFreeRangeError: If no block of the requested size is free
    """
    networks = sorted({to_network(n) for n in pool})
    taken = sorted({to_network(n) for n in existing})
    size = 2 ** (32 - prefixlen)

    for network in networks:
        if prefixlen < network.prefixlen:
            continue

        candidate = int(network.network_address)
        last = int(network.broadcast_address)
        while candidate + size - 1 <= last:
            candidate_last = candidate + size - 1
            blocker = next(
                (
                    t for t in taken
                    if int(t.network_address) <= candidate_last and int(t.broadcast_address) >= candidate
                ),
                None,
            )
            if blocker is None:
                return ipaddress.IPv4Network((candidate, prefixlen))

            next_start = max(int(blocker.broadcast_address) + 1, candidate + size)
            candidate = (next_start + size - 1) // size * size

    pool_text = ", ".join(str(n) for n in networks) or "<empty>"
    raise NoFreeRangeError(f"no free /{prefixlen} subnet left in pool {pool_text}")
