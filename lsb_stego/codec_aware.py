"""
codec_aware.py

Quantization-bucket embedding, meant to survive re-encoding better than
plain bit clearing.

Each carrier sample is snapped into the lower or upper half of a
quantization bucket whose width depends on the target bitrate and on the
sample magnitude:

    bitrate   >=256  >=192  >=128  else
    base step    4      6      8    12

    |sample|  <2000  <8000  <20000  else
    step     base/2   base  2*base  3*base

bit = (sample - floor(sample/step)*step) >= step/2

Only samples in the middle 40% of the signal (a stand-in for a spectral
sub-band) are used.
"""
import logging

import numpy as np

from lsb_stego.engine import bits_to_bytes, bytes_to_bits
from lsb_stego.errors import InsufficientCarrier, PayloadTooLarge
from lsb_stego.positions import generate_positions
from lsb_stego.recovery import Recovered, recover

logger = logging.getLogger(__name__)

INT16_MIN = -32768
INT16_MAX = 32767
BAND_LOW = 0.3
BAND_HIGH = 0.7
MAX_NUDGE = 64


class CodecAwareQuantizer:
    def __init__(self, bitrate: int = 320):
        self.bitrate = bitrate

    def base_step(self) -> int:
        if self.bitrate >= 256:
            return 4
        if self.bitrate >= 192:
            return 6
        if self.bitrate >= 128:
            return 8
        return 12

    def quantization_step(self, sample: int) -> int:
        base = self.base_step()
        magnitude = abs(int(sample))
        if magnitude < 2000:
            return base // 2
        if magnitude < 8000:
            return base
        if magnitude < 20000:
            return base * 2
        return base * 3

    def _split(self, sample: int):
        step = self.quantization_step(sample)
        quantized = (sample // step) * step
        return step, quantized, sample - quantized

    def extract_bit(self, sample) -> int:
        step, _, remainder = self._split(int(sample))
        return 1 if remainder * 2 >= step else 0

    def embed_bit(self, sample, bit) -> int:
        sample = int(sample)
        step, quantized, remainder = self._split(sample)
        if bit:
            if remainder * 2 < step:
                sample = quantized + (step * 3) // 4
        else:
            if remainder * 2 >= step:
                sample = quantized + step // 4
        sample = max(INT16_MIN, min(INT16_MAX, sample))

        # moving across a magnitude boundary changes the step; walk to the
        # nearest value that still reads back as `bit`
        if self.extract_bit(sample) != (1 if bit else 0):
            for delta in range(1, MAX_NUDGE):
                for candidate in (sample - delta, sample + delta):
                    if INT16_MIN <= candidate <= INT16_MAX and self.extract_bit(candidate) == (1 if bit else 0):
                        return candidate
        return sample

    @staticmethod
    def is_high_frequency_band(index: int, total: int) -> bool:
        position = index / total
        return BAND_LOW <= position <= BAND_HIGH

    @classmethod
    def eligible_indices(cls, total: int) -> np.ndarray:
        if total <= 0:
            return np.zeros(0, dtype=np.int64)
        idx = np.arange(total, dtype=np.int64)
        position = idx / total
        return idx[(position >= BAND_LOW) & (position <= BAND_HIGH)]


# ---------- framed payload over the band ----------
class CodecAwareSource:
    def __init__(self, samples, band: np.ndarray, positions, quantizer: CodecAwareQuantizer):
        self.samples = samples
        self.band = band
        self.positions = positions
        self.quantizer = quantizer

    @property
    def available_bytes(self) -> int:
        return len(self.positions) // 8

    def read(self, byte_count: int) -> bytes:
        count = min(byte_count, self.available_bytes) * 8
        bits = [self.quantizer.extract_bit(self.samples[self.band[p]]) for p in self.positions[:count]]
        return bits_to_bytes(bits)


def _band(samples) -> np.ndarray:
    band = CodecAwareQuantizer.eligible_indices(len(samples))
    if len(band) == 0:
        raise InsufficientCarrier("no samples in the embedding band")
    return band


def embed_codec_aware(samples, payload: bytes, key: str, lsb_depth: int, use_random: bool,
                      bitrate: int = 320) -> np.ndarray:
    quantizer = CodecAwareQuantizer(bitrate)
    band = _band(samples)
    positions = generate_positions(key, use_random, len(band), lsb_depth)
    bits = bytes_to_bits(payload)
    # one bit per position
    if len(bits) > len(positions):
        raise PayloadTooLarge(len(bits), len(positions))

    logger.info("[*] Codec-aware: embedding %d bits in a band of %d samples (bitrate %dk)",
                len(bits), len(band), bitrate)
    out = np.array(samples, copy=True)
    for bit, p in zip(bits, positions):
        idx = band[p]
        out[idx] = quantizer.embed_bit(out[idx], bit)
    return out


def extract_codec_aware(samples, key: str, bitrate: int = 320, declared=None) -> Recovered:
    quantizer = CodecAwareQuantizer(bitrate)
    band = _band(samples)

    def open_source(params):
        positions = generate_positions(key, params.use_random, len(band), params.lsb_depth)
        return CodecAwareSource(samples, band, positions, quantizer)

    return recover(open_source, declared, label="codec-aware")
