"""
signature.py

Contiguous sample-domain layout with per-depth start/end signatures:

    [start_sig(n_lsb)] [framed payload] [end_sig(n_lsb)]

written into consecutive samples starting at 0 (sequential) or at a start
offset derived from SHA-256(key) (random). The signatures are distinct per
depth, so the extractor finds both the depth and, in random mode, the start
offset by scanning for them.
"""
import logging
from typing import Iterator, Tuple

import numpy as np

from lsb_stego.engine import bits_to_bytes, bytes_to_bits, embed_bits, extract_bits
from lsb_stego.errors import ExtractionFailed, FormatError, PayloadTooLarge
from lsb_stego.payload import signature_pair, unwrap_bits, wrap_bits
from lsb_stego.positions import key_digest, random_start_offset, start_offset_bound
from lsb_stego.recovery import PARAMETER_GRID, EmbeddingParameters, Recovered, read_framed

logger = logging.getLogger(__name__)

SCAN_CHUNK = 1 << 20


def units_for_payload(payload_len: int, lsb_depth: int) -> int:
    start, end = signature_pair(lsb_depth)
    total_bits = len(start) + payload_len * 8 + len(end)
    return -(-total_bits // lsb_depth)


def embed_signed(samples, payload: bytes, key: str, lsb_depth: int, use_random: bool) -> np.ndarray:
    bits = np.asarray(wrap_bits(bytes_to_bits(payload), lsb_depth), dtype=np.uint8)
    units = -(-len(bits) // lsb_depth)
    if units > len(samples):
        raise PayloadTooLarge(len(bits), len(samples) * lsb_depth)

    start = random_start_offset(key, len(samples), units) if use_random else 0
    logger.info("[*] Signature layout: %d bits from sample %d (n_lsb=%d)", len(bits), start, lsb_depth)
    return embed_bits(samples, np.arange(start, start + units), bits, lsb_depth)


class SignedSource:
    """Reads payload bytes that follow the start signature at `start`."""

    def __init__(self, samples, start: int, lsb_depth: int):
        self.samples = samples
        self.start = start
        self.lsb_depth = lsb_depth
        self.start_sig, self.end_sig = signature_pair(lsb_depth)

    @property
    def available_bytes(self) -> int:
        bits = (len(self.samples) - self.start) * self.lsb_depth - len(self.start_sig) - len(self.end_sig)
        return max(0, bits // 8)

    def _bits(self, bit_offset: int, bit_count: int) -> np.ndarray:
        end_unit = min(len(self.samples), self.start + -(-(bit_offset + bit_count) // self.lsb_depth))
        positions = np.arange(self.start, end_unit)
        bits = extract_bits(self.samples, positions, self.lsb_depth, bit_offset + bit_count)
        return bits[bit_offset:bit_offset + bit_count]

    def read(self, byte_count: int) -> bytes:
        byte_count = min(byte_count, self.available_bytes)
        return bits_to_bytes(self._bits(len(self.start_sig), byte_count * 8))

    def signed_bits(self, payload_len: int) -> np.ndarray:
        """Start signature, payload and end signature as one bit run."""
        return self._bits(0, len(self.start_sig) + payload_len * 8 + len(self.end_sig))


def _signature_mask(samples, starts: np.ndarray, lsb_depth: int) -> np.ndarray:
    """Vectorised start-signature test for every candidate start offset."""
    start_sig, _ = signature_pair(lsb_depth)
    n = len(samples)
    ok = np.ones(len(starts), dtype=bool)
    for g in range(-(-len(start_sig) // lsb_depth)):
        chunk = start_sig[g * lsb_depth:(g + 1) * lsb_depth]
        mask = (1 << len(chunk)) - 1
        expected = sum(bit << i for i, bit in enumerate(chunk))
        idx = starts + g
        in_range = idx < n
        vals = np.zeros(len(starts), dtype=np.int64)
        vals[in_range] = np.asarray(samples)[idx[in_range]].astype(np.int64) & mask
        ok &= in_range & (vals == expected)
    return ok


def _random_start_candidates(samples, key: str, lsb_depth: int) -> Iterator[int]:
    """
    Every offset the embedder could have picked for this key (seed % bound for
    bound in 1..n) that also carries the start signature.
    """
    n = len(samples)
    seed = np.uint64(int.from_bytes(key_digest(key)[:8], "big"))
    seen = set()
    for lo in range(1, n + 1, SCAN_CHUNK):
        bounds = np.arange(lo, min(n + 1, lo + SCAN_CHUNK), dtype=np.uint64)
        starts = np.unique((seed % bounds).astype(np.int64))
        for s in starts[_signature_mask(samples, starts, lsb_depth)]:
            s = int(s)
            if s not in seen:
                seen.add(s)
                yield s


def _candidate_starts(samples, key: str, params: EmbeddingParameters) -> Iterator[int]:
    if params.use_random:
        yield from _random_start_candidates(samples, key, params.lsb_depth)
    elif len(samples) and _signature_mask(samples, np.array([0]), params.lsb_depth)[0]:
        yield 0


def _accept(samples, key: str, params: EmbeddingParameters, start: int) -> Tuple[bytes, bytes]:
    source = SignedSource(samples, start, params.lsb_depth)
    metadata, secret = read_framed(source)
    payload_len = 4 + len(metadata) + 4 + len(secret)
    unwrap_bits(source.signed_bits(payload_len), params.lsb_depth, payload_len * 8)
    if params.use_random:
        units = units_for_payload(payload_len, params.lsb_depth)
        if random_start_offset(key, len(samples), units) != start:
            raise FormatError(f"start {start} is not the key offset for {units} units "
                              f"(bound {start_offset_bound(len(samples), units)})")
    return metadata, secret


def extract_signed(samples, key: str, grid=PARAMETER_GRID) -> Recovered:
    tried = []
    for params in grid:
        tried.append(params)
        for start in _candidate_starts(samples, key, params):
            try:
                metadata, secret = _accept(samples, key, params, start)
            except FormatError as e:
                logger.debug("[signature] %s start=%d rejected: %s", params, start, e)
                continue
            logger.info("[*] Signature found for %s at sample %d", params, start)
            return Recovered(params, metadata, secret)
    raise ExtractionFailed("failed to extract data - no start signature found", tried)
