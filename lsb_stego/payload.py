"""
payload.py

Payload framing:

    u32le(len(metadata)) ++ metadata ++ u32le(len(secret)) ++ secret

plus the compact FileMetadata record and the per-depth start/end bit
signatures used by the contiguous (signature) layout.
"""
import os
import struct
from dataclasses import dataclass, asdict
from typing import List, Optional, Sequence, Tuple

from lsb_stego.errors import FormatError

LENGTH_PREFIX = struct.Struct("<I")
MAX_METADATA_LENGTH = 10_000

FLAG_ENCRYPTION = 0x01
FLAG_RANDOM_SEED = 0x02


@dataclass
class FileMetadata:
    original_filename: str = ""
    file_extension: str = ""
    file_size_bytes: int = 0
    used_encryption: bool = False
    used_random_seed: bool = False
    lsb_depth: int = 1
    payload_size_bytes: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "FileMetadata":
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


def metadata_for_file(path: str, secret_size: int, payload_size: int, use_encryption: bool,
                      use_random_seed: bool, lsb_depth: int) -> FileMetadata:
    filename = os.path.basename(path)
    return FileMetadata(
        original_filename=filename,
        file_extension=os.path.splitext(filename)[1],
        file_size_bytes=secret_size,
        used_encryption=use_encryption,
        used_random_seed=use_random_seed,
        lsb_depth=lsb_depth,
        payload_size_bytes=payload_size,
    )


# ---------- metadata record ----------
def _short_string(value: str) -> bytes:
    raw = value.encode("utf-8")[:255]
    return bytes([len(raw)]) + raw


def serialize_metadata(meta: FileMetadata) -> bytes:
    flags = 0
    if meta.used_encryption:
        flags |= FLAG_ENCRYPTION
    if meta.used_random_seed:
        flags |= FLAG_RANDOM_SEED
    return (_short_string(meta.original_filename)
            + _short_string(meta.file_extension)
            + struct.pack("<Q", meta.file_size_bytes)
            + bytes([flags, meta.lsb_depth])
            + struct.pack("<Q", meta.payload_size_bytes))


def parse_metadata(data: bytes) -> FileMetadata:
    ptr = 0

    def take(n):
        nonlocal ptr
        if ptr + n > len(data):
            raise FormatError(f"metadata record truncated at byte {ptr} (need {n} more)")
        chunk = data[ptr:ptr + n]
        ptr += n
        return chunk

    name = take(take(1)[0]).decode("utf-8", errors="replace")
    ext = take(take(1)[0]).decode("utf-8", errors="replace")
    file_size = struct.unpack("<Q", take(8))[0]
    flags, depth = take(2)
    payload_size = struct.unpack("<Q", take(8))[0]
    return FileMetadata(
        original_filename=name,
        file_extension=ext,
        file_size_bytes=file_size,
        used_encryption=bool(flags & FLAG_ENCRYPTION),
        used_random_seed=bool(flags & FLAG_RANDOM_SEED),
        lsb_depth=depth,
        payload_size_bytes=payload_size,
    )


# ---------- framing ----------
def frame(metadata: bytes, secret: bytes) -> bytes:
    if len(secret) == 0:
        raise FormatError("secret payload cannot be empty")
    return (LENGTH_PREFIX.pack(len(metadata)) + bytes(metadata)
            + LENGTH_PREFIX.pack(len(secret)) + bytes(secret))


def framed_length(data: bytes, max_metadata_len: Optional[int] = None) -> int:
    """
    Total framed size announced by the two length prefixes at the head of
    `data`. Needs the whole metadata block to be present to reach the second
    prefix; raises FormatError otherwise.
    """
    if len(data) < 4:
        raise FormatError(f"need at least 4 bytes for the metadata length, got {len(data)}")
    meta_len = LENGTH_PREFIX.unpack_from(data, 0)[0]
    if max_metadata_len is not None and meta_len > max_metadata_len:
        raise FormatError(f"invalid metadata length: {meta_len}")
    if 4 + meta_len + 4 > len(data):
        raise FormatError(f"metadata length {meta_len} runs past the {len(data)} available bytes")
    secret_len = LENGTH_PREFIX.unpack_from(data, 4 + meta_len)[0]
    if secret_len == 0:
        raise FormatError("secret length is zero")
    return 4 + meta_len + 4 + secret_len


def unframe(data: bytes) -> Tuple[bytes, bytes]:
    total = framed_length(data)
    if total > len(data):
        raise FormatError(f"insufficient data: framed length {total}, have {len(data)} bytes")
    meta_len = LENGTH_PREFIX.unpack_from(data, 0)[0]
    metadata = bytes(data[4:4 + meta_len])
    secret = bytes(data[4 + meta_len + 4:total])
    return metadata, secret


# ---------- signatures ----------
def _sig(pattern: str) -> Tuple[int, ...]:
    return tuple(int(c) for c in pattern)


SIGNATURES = {
    1: (_sig("10101010101010"), _sig("10101010101010")),
    2: (_sig("01010101010101"), _sig("01010101010101")),
    3: (_sig("1010101001010101"), _sig("0101010110101010")),
    4: (_sig("0101010110101010"), _sig("1010101001010101")),
}


def signature_pair(lsb_depth: int) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    try:
        return SIGNATURES[lsb_depth]
    except KeyError:
        raise FormatError(f"no signature defined for n_lsb={lsb_depth}") from None


def wrap_bits(bits: Sequence[int], lsb_depth: int) -> List[int]:
    start, end = signature_pair(lsb_depth)
    return list(start) + list(bits) + list(end)


def has_start_signature(bits: Sequence[int], lsb_depth: int) -> bool:
    start, _ = signature_pair(lsb_depth)
    return tuple(bits[:len(start)]) == start


def unwrap_bits(bits: Sequence[int], lsb_depth: int, payload_bit_count: int) -> List[int]:
    """
    Strip the start/end signatures around a payload of `payload_bit_count`
    bits. Raises FormatError when either signature does not match.
    """
    start, end = signature_pair(lsb_depth)
    if not has_start_signature(bits, lsb_depth):
        raise FormatError(f"start signature for n_lsb={lsb_depth} not found")
    body_end = len(start) + payload_bit_count
    if tuple(bits[body_end:body_end + len(end)]) != end:
        raise FormatError(f"end signature for n_lsb={lsb_depth} not found")
    return list(bits[len(start):body_end])
