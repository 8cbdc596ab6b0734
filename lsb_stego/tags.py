"""
tags.py

Side-channel storage in ID3v2 user-defined text frames (TXXX).

Only what the stego pipeline needs: read the tag at the start of the file,
add or replace one TXXX frame by description, write the tag back in front
of the untouched audio. Other frames are carried over byte for byte.
"""
import json
import logging
from dataclasses import dataclass
from typing import List, Tuple

from lsb_stego.errors import FormatError, TagNotFound
from lsb_stego.payload import FileMetadata

logger = logging.getLogger(__name__)

METADATA_FIELD = "STEGO_METADATA"
SECRET_FIELD = "SECRET_MESSAGE"

DEFAULT_VERSION = 4
FLAG_EXTENDED_HEADER = 0x40
FLAG_FOOTER = 0x10


@dataclass
class Frame:
    frame_id: str
    flags: bytes
    data: bytes


# ---------- size helpers ----------
def _syncsafe(n: int) -> bytes:
    return bytes([(n >> 21) & 0x7F, (n >> 14) & 0x7F, (n >> 7) & 0x7F, n & 0x7F])


def _unsyncsafe(b: bytes) -> int:
    return ((b[0] & 0x7F) << 21) | ((b[1] & 0x7F) << 14) | ((b[2] & 0x7F) << 7) | (b[3] & 0x7F)


def _frame_size(version: int, raw: bytes) -> int:
    return _unsyncsafe(raw) if version == 4 else int.from_bytes(raw, "big")


def _encode_frame_size(version: int, n: int) -> bytes:
    return _syncsafe(n) if version == 4 else n.to_bytes(4, "big")


# ---------- tag parsing / building ----------
def read_tag(data: bytes) -> Tuple[int, List[Frame], int]:
    """Return (major version, frames, offset where the audio starts)."""
    if len(data) < 10 or data[0:3] != b"ID3":
        return DEFAULT_VERSION, [], 0

    version, flags = data[3], data[5]
    tag_end = 10 + _unsyncsafe(data[6:10])
    if flags & FLAG_FOOTER:
        tag_end += 10
    if version not in (3, 4):
        logger.warning("[!] ID3v2.%d tag is not supported, it will be replaced", version)
        return DEFAULT_VERSION, [], min(tag_end, len(data))

    body_end = min(10 + _unsyncsafe(data[6:10]), len(data))
    ptr = 10
    if flags & FLAG_EXTENDED_HEADER:
        ext = data[10:14]
        ptr += _unsyncsafe(ext) if version == 4 else 4 + int.from_bytes(ext, "big")

    frames = []
    while ptr + 10 <= body_end:
        frame_id = data[ptr:ptr + 4]
        if frame_id[0] == 0:  # padding
            break
        size = _frame_size(version, data[ptr + 4:ptr + 8])
        if ptr + 10 + size > body_end:
            raise FormatError(f"ID3 frame {frame_id!r} runs past the end of the tag")
        frames.append(Frame(frame_id.decode("latin-1"), bytes(data[ptr + 8:ptr + 10]),
                            bytes(data[ptr + 10:ptr + 10 + size])))
        ptr += 10 + size
    return version, frames, min(tag_end, len(data))


def build_tag(version: int, frames: List[Frame]) -> bytes:
    body = b"".join(
        f.frame_id.encode("latin-1") + _encode_frame_size(version, len(f.data)) + f.flags + f.data
        for f in frames)
    return b"ID3" + bytes([version, 0, 0]) + _syncsafe(len(body)) + body


# ---------- TXXX ----------
def _txxx_data(version: int, description: str, value: str) -> bytes:
    if version == 4:
        return b"\x03" + description.encode("utf-8") + b"\x00" + value.encode("utf-8")
    # v2.3 has no UTF-8; UTF-16 with BOM
    return b"\x01" + description.encode("utf-16") + b"\x00\x00" + value.encode("utf-16")


def _parse_txxx(data: bytes) -> Tuple[str, str]:
    if not data:
        raise FormatError("empty TXXX frame")
    encoding, body = data[0], data[1:]
    if encoding in (1, 2):
        codec = "utf-16" if encoding == 1 else "utf-16-be"
        split = 0
        while split + 1 < len(body) and body[split:split + 2] != b"\x00\x00":
            split += 2
        desc, value = body[:split], body[split + 2:]
        while len(value) >= 2 and len(value) % 2 == 0 and value.endswith(b"\x00\x00"):
            value = value[:-2]
    else:
        codec = "utf-8" if encoding == 3 else "latin-1"
        desc, _, value = body.partition(b"\x00")
        value = value.rstrip(b"\x00")
    return desc.decode(codec, errors="replace"), value.decode(codec, errors="replace")


def store_field_bytes(mp3_bytes: bytes, description: str, value: str) -> bytes:
    version, frames, audio_start = read_tag(mp3_bytes)
    kept = [f for f in frames
            if not (f.frame_id == "TXXX" and _parse_txxx(f.data)[0] == description)]
    kept.append(Frame("TXXX", b"\x00\x00", _txxx_data(version, description, value)))
    return build_tag(version, kept) + bytes(mp3_bytes[audio_start:])


def retrieve_field_bytes(mp3_bytes: bytes, description: str) -> str:
    _, frames, _ = read_tag(mp3_bytes)
    for f in frames:
        if f.frame_id == "TXXX":
            desc, value = _parse_txxx(f.data)
            if desc == description:
                return value
    raise TagNotFound(f"no {description} field found in file")


def store_field(path: str, description: str, value: str) -> None:
    with open(path, "rb") as f:
        data = f.read()
    with open(path, "wb") as f:
        f.write(store_field_bytes(data, description, value))


def retrieve_field(path: str, description: str) -> str:
    with open(path, "rb") as f:
        return retrieve_field_bytes(f.read(), description)


# ---------- stego metadata ----------
def store_metadata_bytes(mp3_bytes: bytes, metadata: FileMetadata) -> bytes:
    return store_field_bytes(mp3_bytes, METADATA_FIELD, json.dumps(metadata.to_dict()))


def retrieve_metadata_bytes(mp3_bytes: bytes) -> FileMetadata:
    raw = retrieve_field_bytes(mp3_bytes, METADATA_FIELD)
    try:
        return FileMetadata.from_dict(json.loads(raw))
    except (ValueError, TypeError) as e:
        raise FormatError(f"failed to unmarshal metadata: {e}") from e


def store_metadata(path: str, metadata: FileMetadata) -> None:
    store_field(path, METADATA_FIELD, json.dumps(metadata.to_dict()))


def retrieve_metadata(path: str) -> FileMetadata:
    with open(path, "rb") as f:
        return retrieve_metadata_bytes(f.read())
