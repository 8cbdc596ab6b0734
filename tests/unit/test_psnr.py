import math

import numpy as np
import pytest

from lsb_stego.errors import EmptySignal, LengthMismatch
from lsb_stego.psnr import SATURATED_PSNR, calculate_psnr, is_quality_acceptable, quality_description


class TestPSNR:

    def test_identical_signals_saturate(self, samples):
        assert calculate_psnr(samples, samples.copy()) == SATURATED_PSNR == 100.0

    def test_unit_error(self):
        original = np.zeros(4, dtype=np.int16)
        embedded = np.ones(4, dtype=np.int16)
        assert calculate_psnr(original, embedded) == pytest.approx(20 * math.log10(32767))

    def test_byte_peak(self):
        original = np.zeros(10, dtype=np.uint8)
        embedded = np.full(10, 2, dtype=np.uint8)
        assert calculate_psnr(original, embedded, max_value=255.0) == pytest.approx(10 * math.log10(255 ** 2 / 4))

    def test_no_integer_wraparound(self):
        original = np.array([-32768], dtype=np.int16)
        embedded = np.array([32767], dtype=np.int16)
        assert calculate_psnr(original, embedded) < 1

    def test_length_mismatch(self):
        with pytest.raises(LengthMismatch):
            calculate_psnr([1, 2, 3], [1, 2])

    def test_empty(self):
        with pytest.raises(EmptySignal):
            calculate_psnr([], [])

    def test_larger_differences_lower_psnr(self, samples):
        values = [calculate_psnr(samples, samples.astype(np.int32) + delta) for delta in (1, 2, 8, 100)]
        assert values == sorted(values, reverse=True)
        assert len(set(values)) == 4

    def test_lsb_noise_is_high_quality(self, samples):
        noisy = samples ^ np.int16(1)
        assert calculate_psnr(samples, noisy) > 80


class TestQuality:

    @pytest.mark.parametrize("value,label", [
        (100.0, "excellent"), (50.0, "excellent"), (49.9, "good"), (40.0, "good"),
        (35.0, "acceptable"), (30.0, "acceptable"), (25.0, "poor"), (20.0, "poor"), (5.0, "very poor"),
    ])
    def test_description(self, value, label):
        assert quality_description(value) == label

    def test_acceptable_threshold(self):
        assert is_quality_acceptable(30.0)
        assert not is_quality_acceptable(29.99)
