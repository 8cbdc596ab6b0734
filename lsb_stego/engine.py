"""
engine.py

n-LSB embedding/extraction over carrier units (int16 PCM samples or uint8
bitstream bytes) at an ordered list of positions.

Bit order: payload bytes are expanded LSB-first, and each group of
`lsb_depth` bits is written LSB-first into the low bits of one unit.
"""
import logging
from typing import Sequence

import numpy as np

from lsb_stego.errors import PayloadTooLarge
from lsb_stego.positions import generate_positions, needed_positions
from lsb_stego.recovery import read_framed

logger = logging.getLogger(__name__)


# ---------- bit helpers ----------
def bytes_to_bits(data: bytes) -> np.ndarray:
    return np.unpackbits(np.frombuffer(bytes(data), dtype=np.uint8), bitorder="little")


def bits_to_bytes(bits) -> bytes:
    bits = np.asarray(bits, dtype=np.uint8)
    usable = len(bits) - (len(bits) % 8)  # drop trailing partial byte
    return np.packbits(bits[:usable], bitorder="little").tobytes()


def capacity_bits(position_count: int, lsb_depth: int) -> int:
    return position_count * lsb_depth


def capacity_bytes(carrier_count: int, lsb_depth: int) -> int:
    return needed_positions(carrier_count, lsb_depth) * lsb_depth // 8


# ---------- core ----------
def embed_bits(carrier, positions: Sequence[int], bits, lsb_depth: int) -> np.ndarray:
    """
    Return a copy of `carrier` with `bits` written into the low `lsb_depth`
    bits of the units at `positions`, in order.

    Raises PayloadTooLarge before anything is copied when the bits do not fit.
    A final short group only overwrites the bits it carries.
    """
    bits = np.asarray(bits, dtype=np.int64).ravel()
    available = capacity_bits(len(positions), lsb_depth)
    if len(bits) > available:
        raise PayloadTooLarge(len(bits), available)

    out = np.array(carrier, copy=True)
    if len(bits) == 0:
        return out

    full_groups, rem = divmod(len(bits), lsb_depth)
    groups = full_groups + (1 if rem else 0)
    idx = np.asarray(positions[:groups], dtype=np.int64)

    padded = np.zeros(groups * lsb_depth, dtype=np.int64)
    padded[:len(bits)] = bits
    weights = np.left_shift(1, np.arange(lsb_depth, dtype=np.int64))
    values = padded.reshape(groups, lsb_depth) @ weights

    masks = np.full(groups, (1 << lsb_depth) - 1, dtype=np.int64)
    if rem:
        masks[-1] = (1 << rem) - 1

    original = out[idx].astype(np.int64)
    out[idx] = ((original & ~masks) | values).astype(out.dtype)
    return out


def extract_bits(carrier, positions: Sequence[int], lsb_depth: int, bit_count: int) -> np.ndarray:
    groups = -(-bit_count // lsb_depth)
    idx = np.asarray(positions[:groups], dtype=np.int64)
    values = np.asarray(carrier)[idx].astype(np.int64) & ((1 << lsb_depth) - 1)
    bits = (values[:, None] >> np.arange(lsb_depth, dtype=np.int64)) & 1
    return bits.astype(np.uint8).ravel()[:bit_count]


def extract_bytes(carrier, positions: Sequence[int], lsb_depth: int, byte_count: int) -> bytes:
    return bits_to_bytes(extract_bits(carrier, positions, lsb_depth, byte_count * 8))


# ---------- framed payload over generated positions ----------
class LSBSource:
    """Byte reader over one carrier under one (positions, depth) guess."""

    def __init__(self, carrier, positions: Sequence[int], lsb_depth: int):
        self.carrier = carrier
        self.positions = positions
        self.lsb_depth = lsb_depth

    @property
    def available_bytes(self) -> int:
        return capacity_bits(len(self.positions), self.lsb_depth) // 8

    def read(self, byte_count: int) -> bytes:
        byte_count = min(byte_count, self.available_bytes)
        return extract_bytes(self.carrier, self.positions, self.lsb_depth, byte_count)


def embed_payload(carrier, payload: bytes, key: str, lsb_depth: int, use_random: bool) -> np.ndarray:
    positions = generate_positions(key, use_random, len(carrier), lsb_depth)
    bits = bytes_to_bits(payload)
    logger.info("[*] Embedding %d bits into %d positions using %d LSBs (capacity %d bits)",
                len(bits), len(positions), lsb_depth, capacity_bits(len(positions), lsb_depth))
    return embed_bits(carrier, positions, bits, lsb_depth)


def lsb_source(carrier, key: str, lsb_depth: int, use_random: bool) -> LSBSource:
    positions = generate_positions(key, use_random, len(carrier), lsb_depth)
    return LSBSource(carrier, positions, lsb_depth)


def extract_payload(carrier, key: str, lsb_depth: int, use_random: bool):
    """Read back what embed_payload wrote: (metadata, secret)."""
    return read_framed(lsb_source(carrier, key, lsb_depth, use_random))
