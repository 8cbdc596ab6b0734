import math

import numpy as np

from lsb_stego.errors import EmptySignal, LengthMismatch

PCM16_PEAK = 32767.0
SATURATED_PSNR = 100.0
ACCEPTABLE_PSNR = 30.0


def calculate_psnr(original_data, embedded_data, max_value: float = PCM16_PEAK) -> float:
    """
    PSNR (dB) between two equally sized signals.

    Identical signals saturate at 100 dB instead of dividing by zero.
    `max_value` is the peak amplitude of a carrier unit: 32767 for 16-bit PCM,
    255 when the units are raw bitstream bytes.
    """
    if len(original_data) != len(embedded_data):
        raise LengthMismatch(
            f"Audio data lengths must be equal for PSNR calculation ({len(original_data)} != {len(embedded_data)})")
    if len(original_data) == 0:
        raise EmptySignal("Audio data cannot be empty")

    diff = np.asarray(original_data, dtype=np.float64) - np.asarray(embedded_data, dtype=np.float64)
    mse = float(np.mean(diff * diff))
    if mse == 0:
        return SATURATED_PSNR
    return 10 * math.log10((max_value * max_value) / mse)


def quality_description(psnr: float) -> str:
    if psnr >= 50:
        return "excellent"
    if psnr >= 40:
        return "good"
    if psnr >= 30:
        return "acceptable"
    if psnr >= 20:
        return "poor"
    return "very poor"


def is_quality_acceptable(psnr: float) -> bool:
    return psnr >= ACCEPTABLE_PSNR
