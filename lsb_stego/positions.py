"""
positions.py

Deterministic carrier-position selection.

Both sides of the channel derive the same index list from nothing but the
stego key, the mode and the carrier size, so extraction can mirror embedding
without storing a position map next to the audio.
"""
import hashlib
import struct
from typing import List

from lsb_stego.errors import InsufficientCarrier


def key_digest(key: str) -> bytes:
    return hashlib.sha256(key.encode("utf-8")).digest()


def needed_positions(carrier_count: int, lsb_depth: int) -> int:
    # ceil(carrier_count * lsb_depth / 8); embed and extract must agree on this
    return (carrier_count * lsb_depth + 7) // 8


def calculate_capacity(carrier_count: int, lsb_depth: int) -> int:
    """Capacity figure reported to users (carrier_count * lsb_depth / 8)."""
    return (carrier_count * lsb_depth) // 8


def generate_positions(key: str, use_random: bool, carrier_count: int, lsb_depth: int) -> List[int]:
    if carrier_count <= 0:
        raise InsufficientCarrier(f"carrier has no usable units (count={carrier_count})")
    if use_random:
        return _random_positions(key, carrier_count, lsb_depth)
    return _sequential_positions(carrier_count, lsb_depth)


def _sequential_positions(carrier_count: int, lsb_depth: int) -> List[int]:
    needed = needed_positions(carrier_count, lsb_depth)
    return [i % carrier_count for i in range(needed)]


def _random_positions(key: str, carrier_count: int, lsb_depth: int) -> List[int]:
    digest = key_digest(key)
    dlen = len(digest)
    needed = needed_positions(carrier_count, lsb_depth)

    positions = []
    chosen = set()
    # the window repeats every dlen attempts, so later attempts add nothing
    max_attempts = min(needed * 2, dlen)
    for hash_index in range(max_attempts):
        if len(positions) >= needed:
            break
        # rolling 2-byte little-endian window over the digest
        pos = digest[hash_index % dlen] + digest[(hash_index + 1) % dlen] * 256
        pos %= carrier_count
        if pos not in chosen:
            chosen.add(pos)
            positions.append(pos)

    # fill: index len(positions) when free, otherwise the lowest unused index
    lowest = 0
    while len(positions) < needed:
        pos = len(positions) % carrier_count
        if pos in chosen:
            while lowest in chosen:
                lowest += 1
            if lowest >= carrier_count:
                raise InsufficientCarrier(f"{needed} positions requested from {carrier_count} units")
            pos = lowest
        chosen.add(pos)
        positions.append(pos)

    return positions


def random_start_offset(key: str, carrier_count: int, units_needed: int) -> int:
    """
    Key-derived start index for contiguous sample-domain layouts.

    The first 8 digest bytes are read as a big-endian 64-bit seed and reduced
    so that at least `units_needed` units remain after the returned offset.
    """
    seed = struct.unpack(">Q", key_digest(key)[:8])[0]
    return seed % start_offset_bound(carrier_count, units_needed)


def start_offset_bound(carrier_count: int, units_needed: int) -> int:
    return max(1, carrier_count - units_needed)
