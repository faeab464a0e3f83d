"""Tests for internal node combining functions."""

import zlib

import pytest

from merkle_checkpoint.combiners import (
    COMBINERS,
    Adler32Combiner,
    Combiner,
    Crc32Combiner,
    get_combiner,
)


class TestAdler32Combiner:
    """Tests for the default combiner."""

    def test_streams_left_then_right(self):
        """combine(a, b) is Adler-32 of a followed by b."""
        combiner = Adler32Combiner()
        # Adler-32 of "Wikipedia" is 0x11E60398
        assert combiner.combine(b"Wiki", b"pedia") == bytes.fromhex("0000000011e60398")

    def test_fixed_eight_byte_digest(self):
        """Output is 8 bytes whatever the input lengths."""
        combiner = Adler32Combiner()
        for left, right in [(b"", b""), (b"a", b"b" * 1000), (b"x" * 40, b"y" * 8)]:
            result = combiner.combine(left, right)
            assert len(result) == combiner.digest_size == 8
            assert result[:4] == b"\x00\x00\x00\x00"

    def test_order_sensitive(self):
        combiner = Adler32Combiner()
        assert combiner.combine(b"abc", b"def") != combiner.combine(b"def", b"abc")

    def test_empty_inputs(self):
        """Adler-32 starts at 1."""
        assert Adler32Combiner().combine(b"", b"") == (1).to_bytes(8, "big")


class TestCrc32Combiner:
    """Tests for the alternate combiner."""

    def test_streams_left_then_right(self):
        combiner = Crc32Combiner()
        expected = zlib.crc32(b"leftright").to_bytes(8, "big")
        assert combiner.combine(b"left", b"right") == expected

    def test_differs_from_adler32(self):
        assert Crc32Combiner().combine(b"a", b"b") != Adler32Combiner().combine(b"a", b"b")


class TestGetCombiner:
    """Tests for the combiner factory."""

    def test_default_is_adler32(self):
        combiner = get_combiner()
        assert isinstance(combiner, Adler32Combiner)
        assert combiner.name == "adler32"

    @pytest.mark.parametrize("name", sorted(COMBINERS))
    def test_registered_names(self, name: str):
        combiner = get_combiner(name)
        assert isinstance(combiner, Combiner)
        assert combiner.name == name

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="not supported"):
            get_combiner("sha256")
