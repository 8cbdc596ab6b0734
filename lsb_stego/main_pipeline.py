"""
main_pipeline.py

End-to-end embed/extract over files.

Embed:   secret -> [vigenere] -> frame(metadata, secret) -> carrier mode
         -> (PCM modes) re-encode, read back when lossy / (bitstream) write bytes
         -> [ID3 metadata]
Extract: stego -> bitstream / signature / codec-aware / plain LSB, each with
         its own parameter search -> unframe -> [vigenere] -> secret file
"""
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

import lsb_stego.audio as au
import lsb_stego.bitstream as bs
import lsb_stego.cipher as ci
import lsb_stego.codec_aware as ca
import lsb_stego.signature as sg
import lsb_stego.tags as tg
from lsb_stego.config import Config
from lsb_stego.engine import capacity_bytes, embed_payload, lsb_source
from lsb_stego.errors import ExtractionFailed, FormatError, PayloadNotRecoverable, StegoError, TagNotFound
from lsb_stego.payload import FileMetadata, frame, metadata_for_file, parse_metadata, serialize_metadata
from lsb_stego.positions import generate_positions
from lsb_stego.psnr import calculate_psnr, is_quality_acceptable, quality_description
from lsb_stego.recovery import EmbeddingParameters, Recovered, recover
from lsb_stego.validation import validate_depth, validate_key

logger = logging.getLogger(__name__)

PCM_MODES = ("sample", "signature", "codec")
MODES = PCM_MODES + ("bitstream",)
EMBED_MODES = ("auto",) + MODES
EXTRACT_ORDER = ("bitstream", "signature", "codec", "sample")


def extract_file_extension(filename: str) -> Optional[str]:
    match = re.search(r"\.([^.]+)$", filename or "")
    return match.group(1) if match else None


@dataclass
class EmbedConfig:
    cover_audio: str
    secret_file: str
    stego_key: str
    output_path: str
    n_lsb: int = 1
    use_random_seed: bool = False
    use_encryption: bool = False
    mode: str = Config.DEFAULT_MODE
    bitrate: int = Config.BITRATE
    store_tag_metadata: bool = False


@dataclass
class EmbedResult:
    output_path: str
    mode: str
    psnr: float
    quality: str
    payload_size: int
    capacity_bytes: int
    metadata: FileMetadata


@dataclass
class ExtractConfig:
    stego_audio: str
    stego_key: str
    output_path: str
    use_decryption: Optional[bool] = None  # None: follow the embedded metadata flag
    mode: str = "auto"
    bitrate: int = Config.BITRATE


@dataclass
class ExtractResult:
    output_path: str
    method: str
    params: EmbeddingParameters
    metadata: Optional[FileMetadata]
    secret_size: int
    failures: List[str] = field(default_factory=list)


def _check_mode(mode: str, allowed) -> None:
    if mode not in allowed:
        raise StegoError(f"unknown mode {mode!r}, expected one of {', '.join(allowed)}")


def build_payload(secret: bytes, secret_name: str, key: str, n_lsb: int, use_random: bool,
                  use_encryption: bool) -> Tuple[FileMetadata, bytes]:
    if len(secret) == 0:
        raise FormatError("secret file is empty")
    data = ci.vigenere_encrypt(secret, key) if use_encryption else secret
    metadata = metadata_for_file(secret_name, len(secret), len(data), use_encryption, use_random, n_lsb)
    return metadata, frame(serialize_metadata(metadata), data)


def embed_samples(samples: np.ndarray, payload: bytes, key: str, n_lsb: int, use_random: bool,
                  mode: str, bitrate: int = Config.BITRATE) -> np.ndarray:
    if mode == "sample":
        return embed_payload(samples, payload, key, n_lsb, use_random)
    if mode == "signature":
        return sg.embed_signed(samples, payload, key, n_lsb, use_random)
    if mode == "codec":
        return ca.embed_codec_aware(samples, payload, key, n_lsb, use_random, bitrate)
    raise StegoError(f"mode {mode!r} does not operate on PCM samples")


def _sample_capacity(n_samples: int, key: str, n_lsb: int, use_random: bool, mode: str) -> int:
    if mode == "codec":
        band = ca.CodecAwareQuantizer.eligible_indices(n_samples)
        return len(generate_positions(key, use_random, len(band), n_lsb)) // 8 if len(band) else 0
    if mode == "signature":
        return n_samples * n_lsb // 8
    return capacity_bytes(n_samples, n_lsb)


def resolve_embed_mode(mode: str, output_path: str) -> str:
    if mode != "auto":
        return mode
    # an MP3 output only keeps payloads written into the MP3 bytes themselves
    return "sample" if au.is_pcm_path(output_path) else "bitstream"


def load_mp3_cover(path: str, bitrate: int) -> bytes:
    """MP3 bytes to embed into; PCM covers are encoded to MP3 first."""
    if not au.is_pcm_path(path):
        with open(path, "rb") as f:
            return f.read()
    decoded = au.decode(path)
    with tempfile.TemporaryDirectory() as workdir:
        cover_mp3 = os.path.join(workdir, "cover.mp3")
        au.encode(decoded.samples, decoded.sample_rate, decoded.channels, bitrate, cover_mp3)
        with open(cover_mp3, "rb") as f:
            return f.read()


def verify_written(path: str, key: str, mode: str, bitrate: int, payload: bytes) -> None:
    """
    Read a re-encoded stego file back with the extractor for `mode`.

    Removes the file and raises PayloadNotRecoverable when the framed
    payload does not come back byte for byte.
    """
    try:
        rec, _, _, _ = extract_from_file(path, key, mode, bitrate)
        survived = frame(rec.metadata, rec.secret) == payload
    except StegoError as e:
        logger.info("[*] Read-back of %s failed: %s", path, e)
        survived = False
    if not survived:
        os.remove(path)
        raise PayloadNotRecoverable(
            f"payload did not survive the MP3 re-encode in {mode} mode; "
            f"use bitstream mode or a .wav/.flac output")
    logger.info("[*] Payload verified in re-encoded %s", path)


def embed(config: EmbedConfig) -> EmbedResult:
    validate_key(config.stego_key)
    validate_depth(config.n_lsb)
    _check_mode(config.mode, EMBED_MODES)
    mode = resolve_embed_mode(config.mode, config.output_path)
    if mode == "bitstream" and au.is_pcm_path(config.output_path):
        raise StegoError(f"bitstream mode writes MP3 data, not {os.path.splitext(config.output_path)[1]}")

    with open(config.secret_file, "rb") as f:
        secret = f.read()
    metadata, payload = build_payload(secret, config.secret_file, config.stego_key, config.n_lsb,
                                      config.use_random_seed, config.use_encryption)
    logger.info("[*] Total data to embed (metadata + message): %d bytes, mode %s", len(payload), mode)

    if mode == "bitstream":
        cover = load_mp3_cover(config.cover_audio, config.bitrate)
        capacity = bs.bitstream_capacity_bytes(cover, config.stego_key, config.n_lsb, config.use_random_seed)
        stego = bs.embed_bitstream(cover, payload, config.stego_key, config.n_lsb, config.use_random_seed)
        psnr_value = calculate_psnr(np.frombuffer(cover, dtype=np.uint8),
                                    np.frombuffer(stego, dtype=np.uint8), max_value=255.0)
        with open(config.output_path, "wb") as f:
            f.write(stego)
    else:
        decoded = au.decode(config.cover_audio)
        capacity = _sample_capacity(len(decoded.samples), config.stego_key, config.n_lsb,
                                    config.use_random_seed, mode)
        stego_samples = embed_samples(decoded.samples, payload, config.stego_key, config.n_lsb,
                                      config.use_random_seed, mode, config.bitrate)
        psnr_value = calculate_psnr(decoded.samples, stego_samples)
        au.encode(stego_samples, decoded.sample_rate, decoded.channels, config.bitrate, config.output_path)
        if not au.is_pcm_path(config.output_path):
            verify_written(config.output_path, config.stego_key, mode, config.bitrate, payload)

    if config.store_tag_metadata:
        if au.is_pcm_path(config.output_path):
            logger.warning("[!] %s is not an MP3 file, skipping ID3 metadata", config.output_path)
        else:
            tg.store_metadata(config.output_path, metadata)

    quality = quality_description(psnr_value)
    logger.info("[*] PSNR between original and embedded audio: %.2f dB (%s)", psnr_value, quality)
    if not is_quality_acceptable(psnr_value):
        logger.warning("[!] PSNR %.2f dB is below the acceptable threshold", psnr_value)
    logger.info("[*] Successfully embedded %d bytes into %s", len(secret), config.output_path)

    return EmbedResult(config.output_path, mode, psnr_value, quality, len(payload), capacity, metadata)


# ---------- extraction ----------
def _tag_metadata(data: bytes) -> Optional[FileMetadata]:
    try:
        return tg.retrieve_metadata_bytes(data)
    except (TagNotFound, FormatError):
        return None


def _declared_from(metadata: Optional[FileMetadata]) -> Optional[Callable[[], EmbeddingParameters]]:
    if metadata is None:
        return None

    def declared():
        try:
            validate_depth(metadata.lsb_depth)
        except StegoError as e:
            raise FormatError(f"tag metadata carries an invalid depth: {e}") from e
        return EmbeddingParameters(metadata.lsb_depth, metadata.used_random_seed)

    return declared


def extract_from_file(path: str, key: str, mode: str = "auto",
                      bitrate: int = Config.BITRATE) -> Tuple[Recovered, str, Optional[FileMetadata], List[str]]:
    """Run the extraction strategies in order; return the first success."""
    with open(path, "rb") as f:
        data = f.read()

    tag_meta = _tag_metadata(data)
    declared = _declared_from(tag_meta)
    if mode == "auto":
        methods = [m for m in EXTRACT_ORDER if not (m == "bitstream" and au.is_pcm_path(path))]
    else:
        methods = [mode]

    decoded = None
    failures = []
    for method in methods:
        logger.info("[*] Trying %s extraction", method)
        try:
            if method == "bitstream":
                rec = bs.extract_bitstream(data, key)
            else:
                if decoded is None:
                    decoded = au.decode(path)
                samples = decoded.samples
                if method == "signature":
                    rec = sg.extract_signed(samples, key)
                elif method == "codec":
                    rec = ca.extract_codec_aware(samples, key, bitrate, declared)
                else:
                    rec = recover(lambda p: lsb_source(samples, key, p.lsb_depth, p.use_random),
                                  declared, label="lsb")
        except StegoError as e:
            logger.info("[*] %s extraction failed: %s", method, e)
            failures.append(f"{method}: {e}")
            continue
        return rec, method, tag_meta, failures

    raise ExtractionFailed("failed to extract data using all methods: " + "; ".join(failures), failures)


def _output_file(output_path: str, metadata: Optional[FileMetadata]) -> str:
    if os.path.isdir(output_path):
        name = os.path.basename(metadata.original_filename) if metadata and metadata.original_filename else ""
        if name in ("", ".", ".."):
            name = "extracted.bin"
        return os.path.join(output_path, name)
    return output_path


def extract(config: ExtractConfig) -> ExtractResult:
    validate_key(config.stego_key)
    _check_mode(config.mode, ("auto",) + MODES)

    rec, method, tag_meta, failures = extract_from_file(config.stego_audio, config.stego_key,
                                                        config.mode, config.bitrate)
    try:
        metadata = parse_metadata(rec.metadata)
    except FormatError as e:
        logger.warning("[!] embedded metadata unreadable (%s), using tag metadata if any", e)
        metadata = tag_meta

    decrypt = config.use_decryption
    if decrypt is None:
        decrypt = bool(metadata and metadata.used_encryption)
    secret = ci.vigenere_decrypt(rec.secret, config.stego_key) if decrypt else rec.secret

    out_path = _output_file(config.output_path, metadata)
    with open(out_path, "wb") as f:
        f.write(secret)
    logger.info("[*] Successfully extracted %d bytes to %s (%s, %s)", len(secret), out_path, method, rec.params)

    return ExtractResult(out_path, method, rec.params, metadata, len(secret), failures)
