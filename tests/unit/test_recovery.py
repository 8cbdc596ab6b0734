"""
Unit tests for parameter recovery over the embedding grid.
"""

import struct

import pytest

from lsb_stego.engine import embed_payload, lsb_source
from lsb_stego.errors import ExtractionFailed, FormatError
from lsb_stego.payload import frame
from lsb_stego.recovery import (PARAMETER_GRID, EmbeddingParameters, brute_force, length_fields_plausible,
                                read_framed, recover)


class BytesSource:
    """In-memory stand-in for a carrier reader."""

    def __init__(self, data):
        self.data = data
        self.reads = []

    @property
    def available_bytes(self):
        return len(self.data)

    def read(self, n):
        self.reads.append(n)
        return self.data[:n]


class TestGrid:

    def test_order(self):
        assert len(PARAMETER_GRID) == 8
        assert PARAMETER_GRID[0] == EmbeddingParameters(1, False)
        assert PARAMETER_GRID[1] == EmbeddingParameters(1, True)
        assert PARAMETER_GRID[-1] == EmbeddingParameters(4, True)
        assert [p.lsb_depth for p in PARAMETER_GRID] == [1, 1, 2, 2, 3, 3, 4, 4]

    def test_str(self):
        assert str(EmbeddingParameters(2, True)) == "n_lsb=2, useRandom=1"


class TestLengthOracle:

    def test_plausible(self):
        assert length_fields_plausible(frame(b"meta", b"secret"))

    def test_too_short(self):
        assert not length_fields_plausible(b"\x00" * 7)

    def test_metadata_over_cap(self):
        assert not length_fields_plausible(struct.pack("<I", 10_001) + b"\x00" * 20000)

    def test_cap_boundary(self):
        data = frame(b"m" * 10_000, b"s")
        assert length_fields_plausible(data)

    def test_secret_past_span(self):
        assert not length_fields_plausible(frame(b"m", b"secret")[:-2])


class TestReadFramed:

    def test_reads_only_what_is_announced(self):
        source = BytesSource(frame(b"meta", b"secret") + b"\x00" * 1000)
        assert read_framed(source) == (b"meta", b"secret")
        assert max(source.reads) == 4 + 4 + 4 + 6

    def test_span_too_small(self):
        with pytest.raises(FormatError):
            read_framed(BytesSource(b"\x00" * 7))

    def test_metadata_over_cap(self):
        with pytest.raises(FormatError, match="invalid metadata length"):
            read_framed(BytesSource(struct.pack("<I", 20_000) + b"\x00" * 30_000))


class TestBruteForce:

    @pytest.mark.parametrize("depth", [1, 2, 3, 4])
    def test_finds_random_mode_parameters(self, samples, depth):
        out = embed_payload(samples, frame(b"meta", b"hidden message"), "pass", depth, True)
        rec = brute_force(lambda p: lsb_source(out, "pass", p.lsb_depth, p.use_random))
        assert rec.secret == b"hidden message"
        assert rec.metadata == b"meta"
        assert rec.params == EmbeddingParameters(depth, True)
        assert not rec.from_header

    def test_exhausted_grid(self, samples):
        with pytest.raises(ExtractionFailed) as exc:
            brute_force(lambda p: lsb_source(samples, "pass", p.lsb_depth, p.use_random))
        assert len(exc.value.tried) == 8
        assert "no valid lsb embedding found" in str(exc.value)

    def test_custom_grid_order(self):
        seen = []

        def open_source(params):
            seen.append(params)
            return BytesSource(b"\xff" * 16)

        grid = [EmbeddingParameters(4, True), EmbeddingParameters(1, False)]
        with pytest.raises(ExtractionFailed):
            brute_force(open_source, grid)
        assert seen == grid


class TestRecover:

    def test_declared_parameters_skip_grid(self):
        seen = []

        def open_source(params):
            seen.append(params)
            return BytesSource(frame(b"m", b"s"))

        rec = recover(open_source, declared=lambda: EmbeddingParameters(3, True))
        assert rec.from_header
        assert rec.params == EmbeddingParameters(3, True)
        assert seen == [EmbeddingParameters(3, True)]

    def test_bad_header_falls_back_to_grid(self):
        def declared():
            raise FormatError("invalid magic bytes")

        rec = recover(lambda p: BytesSource(frame(b"m", b"s")), declared=declared)
        assert not rec.from_header
        assert rec.params == PARAMETER_GRID[0]

    def test_declared_cell_without_payload_falls_back(self):
        def open_source(params):
            if params.lsb_depth == 4:
                return BytesSource(b"\xff" * 32)
            return BytesSource(frame(b"m", b"s"))

        rec = recover(open_source, declared=lambda: EmbeddingParameters(4, False))
        assert not rec.from_header
        assert rec.params == PARAMETER_GRID[0]
