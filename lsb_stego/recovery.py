"""
recovery.py

Parameter recovery for carriers whose embedding parameters are not known.

The parameter space is tiny (n_lsb 1..4 x sequential/random), so instead of
storing the parameters in the clear the extractor walks an ordered grid of
candidates and accepts the first one whose length prefixes look sane. That
check is only an approximate oracle: random bits can produce plausible
lengths under a wrong guess, and the grid order decides which guess wins.
"""
import logging
import struct
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from lsb_stego.errors import ExtractionFailed, FormatError, InvalidDepth, InsufficientCarrier
from lsb_stego.payload import MAX_METADATA_LENGTH, framed_length, unframe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingParameters:
    lsb_depth: int
    use_random: bool

    def __str__(self):
        return f"n_lsb={self.lsb_depth}, useRandom={int(self.use_random)}"


PARAMETER_GRID: List[EmbeddingParameters] = [
    EmbeddingParameters(depth, use_random)
    for depth in (1, 2, 3, 4)
    for use_random in (False, True)
]


@dataclass
class Recovered:
    params: EmbeddingParameters
    metadata: bytes
    secret: bytes
    from_header: bool = False


def length_fields_plausible(data: bytes, max_metadata_len: int = MAX_METADATA_LENGTH) -> bool:
    """Pure predicate over an extracted span: do both length prefixes fit it?"""
    if len(data) < 8:
        return False
    try:
        return framed_length(data, max_metadata_len) <= len(data)
    except FormatError:
        return False


def read_framed(source, max_metadata_len: int = MAX_METADATA_LENGTH) -> Tuple[bytes, bytes]:
    """
    Pull a framed payload out of `source` (anything with `available_bytes`
    and `read(n)`), reading only as much as the prefixes announce.
    Raises FormatError when the prefixes do not fit the available span.
    """
    available = source.available_bytes
    if available < 8:
        raise FormatError(f"only {available} bytes extractable, need at least 8")

    head = source.read(4)
    meta_len = struct.unpack("<I", head)[0]
    if meta_len > max_metadata_len:
        raise FormatError(f"invalid metadata length: {meta_len}")
    if 4 + meta_len + 4 > available:
        raise FormatError(f"metadata length {meta_len} exceeds extractable span of {available} bytes")

    total = framed_length(source.read(4 + meta_len + 4), max_metadata_len)
    if total > available:
        raise FormatError(f"framed length {total} exceeds extractable span of {available} bytes")
    return unframe(source.read(total))


def brute_force(open_source: Callable[[EmbeddingParameters], object],
                grid: Sequence[EmbeddingParameters] = PARAMETER_GRID,
                label: str = "lsb") -> Recovered:
    """
    Try each candidate in `grid` order; `open_source(params)` builds the byte
    reader for that guess. Format failures are local to a cell.
    """
    tried = []
    for params in grid:
        tried.append(params)
        try:
            source = open_source(params)
            metadata, secret = read_framed(source)
        except (FormatError, InsufficientCarrier, InvalidDepth) as e:
            logger.debug("[%s] validation failed for %s: %s", label, params, e)
            continue
        logger.info("[*] %s extraction accepted %s (%d secret bytes)", label, params, len(secret))
        return Recovered(params, metadata, secret)

    raise ExtractionFailed(
        f"failed to extract data - no valid {label} embedding found "
        f"({len(tried)} parameter sets tried)", tried)


def recover(open_source: Callable[[EmbeddingParameters], object],
            declared: Optional[Callable[[], EmbeddingParameters]] = None,
            grid: Sequence[EmbeddingParameters] = PARAMETER_GRID,
            label: str = "lsb") -> Recovered:
    """
    Header first, grid second.

    `declared()` returns in-band (or side-channel) parameters, raising
    FormatError when none validate. When it succeeds the grid is skipped,
    unless the declared cell itself fails to produce a framed payload.
    """
    if declared is not None:
        try:
            params = declared()
        except FormatError as e:
            logger.info("[*] %s: no valid parameter header (%s), guessing parameters", label, e)
        else:
            logger.info("[*] %s: found valid parameter header - %s", label, params)
            try:
                metadata, secret = read_framed(open_source(params))
                return Recovered(params, metadata, secret, from_header=True)
            except FormatError as e:
                logger.warning("[%s] declared parameters %s did not yield a payload: %s", label, params, e)
    return brute_force(open_source, grid, label)
