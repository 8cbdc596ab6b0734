"""
Unit tests for key and depth validation.
"""

import pytest

from lsb_stego.errors import InvalidDepth, InvalidKey, StegoError
from lsb_stego.validation import MAX_KEY_LENGTH, validate_depth, validate_key


class TestValidateKey:
    """Stego keys are 1 to 25 characters."""

    def test_accepts_single_character(self):
        validate_key("k")

    def test_accepts_maximum_length(self):
        validate_key("a" * MAX_KEY_LENGTH)

    def test_rejects_one_over_maximum(self):
        with pytest.raises(InvalidKey):
            validate_key("a" * (MAX_KEY_LENGTH + 1))

    @pytest.mark.parametrize("key", ["", None])
    def test_rejects_empty(self, key):
        with pytest.raises(InvalidKey):
            validate_key(key)

    def test_error_is_catchable_as_value_error(self):
        with pytest.raises(ValueError):
            validate_key("")
        assert issubclass(InvalidKey, StegoError)


class TestValidateDepth:

    @pytest.mark.parametrize("depth", [1, 2, 3, 4])
    def test_accepts_valid_depths(self, depth):
        validate_depth(depth)

    @pytest.mark.parametrize("depth", [0, 5, -1, 8, True, "2", 2.0, None])
    def test_rejects_invalid_depths(self, depth):
        with pytest.raises(InvalidDepth):
            validate_depth(depth)
