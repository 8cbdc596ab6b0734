"""
Unit tests for quantization-bucket (codec-aware) embedding.
"""

import numpy as np
import pytest

from lsb_stego.codec_aware import CodecAwareQuantizer, embed_codec_aware, extract_codec_aware
from lsb_stego.errors import InsufficientCarrier, PayloadTooLarge
from lsb_stego.payload import frame
from lsb_stego.recovery import EmbeddingParameters

PAYLOAD = frame(b"codec-meta", b"survives quantisation")


class TestQuantizer:

    @pytest.mark.parametrize("bitrate,base", [(320, 4), (256, 4), (192, 6), (160, 8), (128, 8), (96, 12)])
    def test_base_step(self, bitrate, base):
        assert CodecAwareQuantizer(bitrate).base_step() == base

    @pytest.mark.parametrize("sample,step", [(0, 2), (-1999, 2), (2000, 4), (7999, 4), (8000, 8),
                                             (-19999, 8), (20000, 12), (-32768, 12)])
    def test_step_by_magnitude(self, sample, step):
        assert CodecAwareQuantizer(320).quantization_step(sample) == step

    def test_extract_bit_halves(self):
        q = CodecAwareQuantizer(192)  # step 6 between 2000 and 8000
        assert q.extract_bit(3000) == 0
        assert q.extract_bit(3002) == 0
        assert q.extract_bit(3003) == 1
        assert q.extract_bit(3005) == 1

    @pytest.mark.parametrize("bitrate", [320, 192, 128, 64])
    @pytest.mark.parametrize("bit", [0, 1])
    def test_embed_then_extract(self, bitrate, bit):
        q = CodecAwareQuantizer(bitrate)
        for sample in range(-32768, 32768, 13):
            value = q.embed_bit(sample, bit)
            assert -32768 <= value <= 32767
            assert q.extract_bit(value) == bit, (sample, value)

    def test_embed_keeps_matching_sample(self):
        q = CodecAwareQuantizer(320)
        assert q.embed_bit(3003, q.extract_bit(3003)) == 3003

    def test_band(self):
        assert CodecAwareQuantizer.is_high_frequency_band(30, 100)
        assert CodecAwareQuantizer.is_high_frequency_band(70, 100)
        assert not CodecAwareQuantizer.is_high_frequency_band(29, 100)
        assert not CodecAwareQuantizer.is_high_frequency_band(71, 100)
        assert list(CodecAwareQuantizer.eligible_indices(100)) == list(range(30, 71))
        assert len(CodecAwareQuantizer.eligible_indices(0)) == 0


class TestCodecAwarePayload:

    @pytest.mark.parametrize("depth", [1, 4])
    @pytest.mark.parametrize("use_random", [False, True])
    def test_round_trip(self, samples, depth, use_random):
        out = embed_codec_aware(samples, PAYLOAD, "codec", depth, use_random, bitrate=192)
        rec = extract_codec_aware(out, "codec", bitrate=192)
        assert rec.metadata == b"codec-meta"
        assert rec.secret == b"survives quantisation"

    def test_declared_parameters(self, samples):
        out = embed_codec_aware(samples, PAYLOAD, "codec", 3, True)
        rec = extract_codec_aware(out, "codec", declared=lambda: EmbeddingParameters(3, True))
        assert rec.from_header
        assert rec.secret == b"survives quantisation"

    def test_only_band_touched(self, samples):
        out = embed_codec_aware(samples, PAYLOAD, "codec", 2, True)
        changed = np.nonzero(out != samples)[0]
        assert len(changed) > 0
        assert changed.min() >= 0.3 * len(samples)
        assert changed.max() <= 0.7 * len(samples)

    def test_too_large(self, small_samples):
        # band of 401 samples, 51 positions at depth 1
        with pytest.raises(PayloadTooLarge):
            embed_codec_aware(small_samples, PAYLOAD, "codec", 1, False)

    def test_empty_carrier(self):
        with pytest.raises(InsufficientCarrier):
            embed_codec_aware(np.zeros(0, dtype=np.int16), PAYLOAD, "codec", 1, False)
