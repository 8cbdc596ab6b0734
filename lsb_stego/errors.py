"""
Error taxonomy for the stego core.

Everything raised on purpose derives from StegoError (itself a ValueError,
which is what the older pipeline code raised), so callers can catch the
whole family at the HTTP/CLI boundary and still tell the cases apart.
"""
from typing import Iterable, Optional


class StegoError(ValueError):
    pass


class InvalidKey(StegoError):
    pass


class InvalidDepth(StegoError):
    pass


class InsufficientCarrier(StegoError):
    pass


class PayloadTooLarge(StegoError):
    def __init__(self, needed_bits: int, available_bits: int, message: Optional[str] = None):
        self.needed_bits = needed_bits
        self.available_bits = available_bits
        if message is None:
            message = (f"Payload too large: need {needed_bits} bits, "
                       f"capacity {available_bits} bits")
        super().__init__(message)


class FormatError(StegoError):
    """Framing / length-field inconsistency. Soft failure inside the grid search."""


class ExtractionFailed(StegoError):
    def __init__(self, message: str, tried: Iterable = ()):
        self.tried = list(tried)
        super().__init__(message)


class LengthMismatch(StegoError):
    pass


class EmptySignal(StegoError):
    pass


# collaborator failures
class AudioCodecError(StegoError):
    pass


class TagNotFound(StegoError):
    pass


class PayloadNotRecoverable(StegoError):
    """The written stego file no longer yields the payload (lossy re-encode)."""
