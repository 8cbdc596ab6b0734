"""
bitstream.py

Embed/extract directly in the bytes of an MP3 file, no decode/re-encode.

Carrier units are the bytes of the stream that are safe to touch:
 - everything after the ID3v2 tag plus a 512 byte guard region,
 - never a frame header (0xFF 0xE? sync + 2 more header bytes),
 - never a byte whose high nibble is 0xF, so no LSB write can create or
   destroy a sync word and the unit list reads back identically after
   embedding.

Layout:
 - first 64 units: 8-byte parameter header, 1 bit per unit
     0xAB 0xCD | n_lsb | useRandom (0/1) | u32le(sum of key bytes)
 - remaining units: framed payload through the n-LSB engine at positions
   from the key.
"""
import logging
import struct
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from lsb_stego.engine import bytes_to_bits, embed_bits, extract_bytes, lsb_source
from lsb_stego.errors import FormatError, InsufficientCarrier
from lsb_stego.positions import generate_positions
from lsb_stego.recovery import EmbeddingParameters, Recovered, recover

logger = logging.getLogger(__name__)

HEADER_MAGIC = b"\xAB\xCD"
HEADER_SIZE = 8
HEADER_BITS = HEADER_SIZE * 8
SKIP_START = 512
FALLBACK_START = 2000
FALLBACK_MIN_POSITIONS = 10000


# ---------- MP3 parsing helpers ----------
BITRATE_TABLE_V1_L3 = [0, 32, 40, 48, 56, 64, 80, 96, 112, 128, 160, 192, 224, 256, 320, 0]
BITRATE_TABLE_V2_L3 = [0, 8, 16, 24, 32, 40, 48, 56, 64, 80, 96, 112, 128, 144, 160, 0]
SAMPLERATE_TABLE_V1 = [44100, 48000, 32000, 0]
SAMPLERATE_TABLE_V2 = [22050, 24000, 16000, 0]


def is_frame_sync(header: bytes) -> bool:
    return len(header) >= 2 and header[0] == 0xFF and (header[1] & 0xE0) == 0xE0


def parse_header(header: bytes) -> Optional[Dict]:
    """Parse a 4-byte MPEG audio header (Layer III focus). None if invalid."""
    if len(header) < 4:
        return None
    b1, b2, b3 = header[1], header[2], header[3]
    mpeg_version = 1 if ((b1 >> 3) & 0x03) == 3 else 2
    layer = {1: 3, 2: 2, 3: 1}.get((b1 >> 1) & 0x03)
    if layer is None:
        return None

    bitrate_idx = (b2 >> 4) & 0x0F
    samplerate_idx = (b2 >> 2) & 0x03
    padding = (b2 >> 1) & 0x01
    channel_mode = (b3 >> 6) & 0x03

    if mpeg_version == 1:
        bitrate = BITRATE_TABLE_V1_L3[bitrate_idx] * 1000
        samplerate = SAMPLERATE_TABLE_V1[samplerate_idx]
    else:
        bitrate = BITRATE_TABLE_V2_L3[bitrate_idx] * 1000
        samplerate = SAMPLERATE_TABLE_V2[samplerate_idx]
    if bitrate == 0 or samplerate == 0:
        return None

    if layer == 3 and mpeg_version != 1:
        frame_size = int(72 * bitrate / samplerate) + padding
    else:
        frame_size = int(144 * bitrate / samplerate) + padding

    return {
        'frame_size': frame_size,
        'mpeg_version': mpeg_version,
        'layer': layer,
        'channel_mode': channel_mode,
        'channels': 1 if channel_mode == 3 else 2,
        'bitrate': bitrate,
        'samplerate': samplerate,
    }


def skip_id3v2(mp3_bytes: bytes) -> int:
    if len(mp3_bytes) < 10:
        return 0
    if mp3_bytes[0:3] == b'ID3':
        size = ((mp3_bytes[6] & 0x7F) << 21) | ((mp3_bytes[7] & 0x7F) << 14) | \
               ((mp3_bytes[8] & 0x7F) << 7) | (mp3_bytes[9] & 0x7F)
        return min(len(mp3_bytes), 10 + size)
    return 0


def scan_frames(mp3_bytes: bytes) -> List[Dict]:
    frames = []
    i = skip_id3v2(mp3_bytes)
    n = len(mp3_bytes)
    while i + 4 <= n:
        header = bytes(mp3_bytes[i:i + 4])
        info = parse_header(header) if is_frame_sync(header) else None
        if info is None or info['frame_size'] <= 4:
            i += 1
            continue
        if i + info['frame_size'] > n:
            break
        info['offset'] = i
        frames.append(info)
        i += info['frame_size']
    return frames


def describe_stream(mp3_bytes: bytes) -> Dict:
    frames = scan_frames(mp3_bytes)
    if not frames:
        return {'frames': 0, 'bitrate': None, 'samplerate': None, 'channels': None}
    bitrates = [f['bitrate'] for f in frames]
    return {
        'frames': len(frames),
        'bitrate': int(round(sum(bitrates) / len(bitrates) / 1000)),
        'samplerate': frames[0]['samplerate'],
        'channels': frames[0]['channels'],
    }


# ---------- carrier units ----------
def find_embeddable_positions(mp3_bytes: bytes) -> np.ndarray:
    arr = np.frombuffer(bytes(mp3_bytes), dtype=np.uint8)
    n = len(arr)
    base = skip_id3v2(mp3_bytes)
    if n < 2:
        return np.zeros(0, dtype=np.int64)

    sync = np.zeros(n, dtype=bool)
    sync[:-1] = (arr[:-1] == 0xFF) & ((arr[1:] & 0xE0) == 0xE0)
    header = sync.copy()
    for j in range(1, 4):
        header[j:] |= sync[:-j]
    volatile = (arr & 0xF0) == 0xF0

    usable = ~header & ~volatile
    usable[:min(n, base + SKIP_START)] = False
    positions = np.nonzero(usable)[0]

    if len(positions) < FALLBACK_MIN_POSITIONS and n - base > FALLBACK_START:
        prev_ff = np.zeros(n, dtype=bool)
        prev_ff[1:] = arr[:-1] == 0xFF
        next_ff = np.zeros(n, dtype=bool)
        next_ff[:-1] = arr[1:] == 0xFF
        usable = ~volatile & ~(prev_ff & ((arr & 0xE0) == 0xE0)) & ~next_ff
        usable[:base + FALLBACK_START] = False
        positions = np.nonzero(usable)[0]

    return positions.astype(np.int64)


# ---------- parameter header ----------
def key_checksum(key: str) -> int:
    return sum(key.encode("utf-8")) & 0xFFFFFFFF


@dataclass
class ParameterHeader:
    lsb_depth: int
    use_random: bool
    key_checksum: int

    @classmethod
    def for_key(cls, lsb_depth: int, use_random: bool, key: str) -> "ParameterHeader":
        return cls(lsb_depth, use_random, key_checksum(key))

    def to_bytes(self) -> bytes:
        return HEADER_MAGIC + bytes([self.lsb_depth, 1 if self.use_random else 0]) + \
            struct.pack("<I", self.key_checksum)

    @classmethod
    def parse(cls, data: bytes, key: str) -> "ParameterHeader":
        if len(data) != HEADER_SIZE:
            raise FormatError("invalid header length")
        if data[0:2] != HEADER_MAGIC:
            raise FormatError("invalid magic bytes")
        n_lsb = data[2]
        if n_lsb < 1 or n_lsb > 4:
            raise FormatError(f"invalid nLsb value: {n_lsb}")
        checksum = struct.unpack("<I", data[4:8])[0]
        if checksum != key_checksum(key):
            raise FormatError("key checksum mismatch")
        return cls(n_lsb, data[3] == 1, checksum)

    @property
    def params(self) -> EmbeddingParameters:
        return EmbeddingParameters(self.lsb_depth, self.use_random)


# ---------- embed / extract ----------
def _split_units(mp3_bytes: bytes):
    offsets = find_embeddable_positions(mp3_bytes)
    if len(offsets) <= HEADER_BITS:
        raise InsufficientCarrier(
            f"not enough embeddable positions: {len(offsets)} (parameter header alone needs {HEADER_BITS})")
    return offsets[:HEADER_BITS], offsets[HEADER_BITS:]


def bitstream_capacity_bytes(mp3_bytes: bytes, key: str, lsb_depth: int, use_random: bool) -> int:
    _, data_offsets = _split_units(mp3_bytes)
    positions = generate_positions(key, use_random, len(data_offsets), lsb_depth)
    return len(positions) * lsb_depth // 8


def embed_bitstream(mp3_bytes: bytes, payload: bytes, key: str, lsb_depth: int, use_random: bool) -> bytes:
    header_offsets, data_offsets = _split_units(mp3_bytes)
    arr = np.frombuffer(bytes(mp3_bytes), dtype=np.uint8).copy()

    positions = generate_positions(key, use_random, len(data_offsets), lsb_depth)
    bits = bytes_to_bits(payload)
    logger.info("[*] Bitstream: embedding %d bits into %d of %d units using %d LSBs",
                len(bits), len(positions), len(data_offsets), lsb_depth)
    # both engine calls validate capacity before anything is written back
    data_units = embed_bits(arr[data_offsets], positions, bits, lsb_depth)
    header = ParameterHeader.for_key(lsb_depth, use_random, key)
    header_units = embed_bits(arr[header_offsets], np.arange(HEADER_BITS), bytes_to_bits(header.to_bytes()), 1)

    arr[header_offsets] = header_units
    arr[data_offsets] = data_units
    return arr.tobytes()


def read_parameter_header(mp3_bytes: bytes, key: str) -> ParameterHeader:
    header_offsets, _ = _split_units(mp3_bytes)
    arr = np.frombuffer(bytes(mp3_bytes), dtype=np.uint8)
    raw = extract_bytes(arr[header_offsets], np.arange(HEADER_BITS), 1, HEADER_SIZE)
    return ParameterHeader.parse(raw, key)


def extract_bitstream(mp3_bytes: bytes, key: str) -> Recovered:
    _, data_offsets = _split_units(mp3_bytes)
    units = np.frombuffer(bytes(mp3_bytes), dtype=np.uint8)[data_offsets]

    def declared():
        return read_parameter_header(mp3_bytes, key).params

    def open_source(params):
        return lsb_source(units, key, params.lsb_depth, params.use_random)

    return recover(open_source, declared, label="bitstream")
