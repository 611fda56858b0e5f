"""Tests for the FNV-1a fingerprints and record keys."""

from __future__ import annotations

import pytest

from ragfusion.hashing import (
    fingerprint,
    fingerprint_bytes,
    fingerprint_of_set,
    path_fingerprint,
    record_key,
)


class TestFingerprint:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("", 0x811C9DC5),
            ("a", 0xE40C292C),
            ("foobar", 0xBF9CF968),
        ],
    )
    def test_known_fnv1a_values(self, text: str, expected: int) -> None:
        assert fingerprint(text) == expected

    def test_bytes_and_text_agree(self) -> None:
        assert fingerprint_bytes("héllo".encode("utf-8")) == fingerprint("héllo")

    def test_text_is_lower_cased_before_hashing(self) -> None:
        assert fingerprint("A.txt") == fingerprint("a.txt")
        assert fingerprint("README") == fingerprint_bytes(b"readme")

    def test_raw_bytes_are_case_sensitive(self) -> None:
        assert fingerprint_bytes(b"Readme") != fingerprint_bytes(b"readme")

    def test_fits_in_32_bits(self) -> None:
        assert 0 <= fingerprint("x" * 1000) < 2**32


class TestPathFingerprint:
    def test_deterministic(self) -> None:
        assert path_fingerprint("/data/docs/a.txt") == path_fingerprint("/data/docs/a.txt")

    def test_case_insensitive(self) -> None:
        assert path_fingerprint("/Data/Docs/A.TXT") == path_fingerprint("/data/docs/a.txt")

    def test_eight_lowercase_hex_digits(self) -> None:
        value = path_fingerprint("/data/docs/a.txt")
        assert len(value) == 8
        assert value == value.lower()
        int(value, 16)

    def test_leading_zeros_kept(self) -> None:
        # Formatting is fixed width whatever the numeric value.
        assert all(len(path_fingerprint(f"/f{i}")) == 8 for i in range(200))


class TestRecordKey:
    def test_format(self) -> None:
        assert record_key("/data/a.txt", 3) == f"{path_fingerprint('/data/a.txt')}-0003"

    def test_pure_function_of_path_and_index(self) -> None:
        assert record_key("/DATA/A.txt", 12) == record_key("/data/a.txt", 12)
        assert record_key("/data/a.txt", 0) != record_key("/data/a.txt", 1)


class TestFingerprintOfSet:
    def test_order_independent(self) -> None:
        assert fingerprint_of_set(["b", "a", "c"]) == fingerprint_of_set(["c", "b", "a"])

    def test_case_insensitive(self) -> None:
        assert fingerprint_of_set(["*.TXT", "*.md"]) == fingerprint_of_set(["*.txt", "*.MD"])

    def test_matches_joined_uppercase(self) -> None:
        value = fingerprint_bytes(b"A;B")
        signed = value - 2**32 if value >= 2**31 else value
        assert fingerprint_of_set(["b", "a"]) == signed

    def test_signed_32_bit_range(self) -> None:
        for i in range(50):
            assert -(2**31) <= fingerprint_of_set([f"q{i}"]) < 2**31
