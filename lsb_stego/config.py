# config.py
import logging
import os


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


class Config:
    # Re-encode bitrate (kbps) for PCM modes; also the codec-aware target bitrate
    BITRATE = _env_int('STEGO_BITRATE', 320)

    # auto | sample | signature | bitstream | codec
    # auto: bitstream for MP3 output, sample for .wav/.flac output
    DEFAULT_MODE = os.getenv('STEGO_MODE', 'auto')

    # Upload limit for the HTTP API
    MAX_CONTENT_LENGTH = _env_int('STEGO_MAX_CONTENT_LENGTH', 50 * 1024 * 1024)

    LOG_LEVEL = os.getenv('STEGO_LOG_LEVEL', 'INFO').upper()

    PORT = _env_int('STEGO_PORT', 5000)
    DEBUG = os.getenv('STEGO_DEBUG', 'false').lower() == 'true'


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
