"""Tests for blocsync.indexing.fractional."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from blocsync.errors import BlocSyncIndexError, ErrorCode
from blocsync.indexing import (
    BASE_62_DIGITS,
    generate_key_between,
    generate_n_keys_between,
    validate_order_key,
)


class TestGenerateKeyBetween:
    @pytest.mark.parametrize(
        ("lower", "upper", "expected"),
        [
            (None, None, "a0"),
            ("a0", None, "a1"),
            ("a1", None, "a2"),
            ("a0", "a1", "a0V"),
            ("a1", "a2", "a1V"),
            ("a0V", "a1", "a0l"),
            ("Zz", "a0", "ZzV"),
            (None, "a0", "Zz"),
            (None, "a0V", "a0"),
            ("az", None, "b00"),
            ("b00", None, "b01"),
        ],
    )
    def test_known_values(self, lower, upper, expected):
        assert generate_key_between(lower, upper) == expected

    def test_after_last_stays_short(self):
        key = None
        for _ in range(100):
            key = generate_key_between(key, None)
        assert len(key) <= 3

    def test_equal_bounds_raise(self):
        with pytest.raises(BlocSyncIndexError) as exc_info:
            generate_key_between("a1", "a1")
        assert exc_info.value.code == ErrorCode.INDEX_ORDER
        assert exc_info.value.context == {"lower": "a1", "upper": "a1"}

    def test_inverted_bounds_raise(self):
        with pytest.raises(BlocSyncIndexError):
            generate_key_between("a2", "a1")

    @pytest.mark.parametrize("bad", ["", "a", "a00", "b0", "a0!", "A" + "0" * 26])
    def test_malformed_key_raises(self, bad):
        with pytest.raises(BlocSyncIndexError):
            generate_key_between(bad, None)

    def test_repeated_insert_before_upper_never_touches_upper(self):
        upper = "a1"
        lower = "a0"
        for _ in range(50):
            key = generate_key_between(lower, upper)
            assert lower < key < upper
            upper = key
        assert "a0" < upper


class TestValidateOrderKey:
    def test_valid_keys_pass(self):
        for key in ("a0", "a0V", "Zz", "b01", "zzzzzzzzzzzzzzzzzzzzzzzzzzz"):
            validate_order_key(key)

    def test_trailing_zero_rejected(self):
        with pytest.raises(BlocSyncIndexError):
            validate_order_key("a0V0")

    def test_invalid_digit_rejected(self):
        with pytest.raises(BlocSyncIndexError):
            validate_order_key("a0-")


class TestGenerateNKeysBetween:
    def test_zero_keys(self):
        assert generate_n_keys_between(None, None, 0) == []

    def test_keys_are_sorted_and_unique(self):
        keys = generate_n_keys_between("a0", "a1", 20)
        assert keys == sorted(keys)
        assert len(set(keys)) == 20
        assert all("a0" < k < "a1" for k in keys)

    @pytest.mark.parametrize(("lower", "upper"), [(None, None), (None, "a5"), ("a5", None)])
    def test_open_bounds(self, lower, upper):
        keys = generate_n_keys_between(lower, upper, 5)
        assert keys == sorted(keys)
        assert len(set(keys)) == 5
        if lower is not None:
            assert keys[0] > lower
        if upper is not None:
            assert keys[-1] < upper


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

@st.composite
def key_pairs(draw):
    """Two distinct valid keys, ordered."""
    keys = [None]
    for _ in range(draw(st.integers(min_value=2, max_value=12))):
        lo_index = draw(st.integers(min_value=0, max_value=len(keys) - 1))
        lower = keys[lo_index]
        upper = keys[lo_index + 1] if lo_index + 1 < len(keys) else None
        keys.insert(lo_index + 1, generate_key_between(lower, upper))
    real = keys[1:]
    i = draw(st.integers(min_value=0, max_value=len(real) - 2))
    j = draw(st.integers(min_value=i + 1, max_value=len(real) - 1))
    return real[i], real[j]


@settings(max_examples=200)
@given(pair=key_pairs())
def test_density_key_strictly_between(pair):
    lower, upper = pair
    key = generate_key_between(lower, upper)
    assert lower < key < upper
    validate_order_key(key)


@settings(max_examples=50)
@given(st.integers(min_value=1, max_value=60), st.booleans())
def test_repeated_insertion_between_same_neighbours(n, toward_upper):
    lower, upper = "a0", "a1"
    for _ in range(n):
        key = generate_key_between(lower, upper)
        assert lower < key < upper
        if toward_upper:
            lower = key
        else:
            upper = key
    # The outer neighbours were never rewritten.
    assert generate_key_between("a0", "a1") == "a0V"


@given(st.text(alphabet=BASE_62_DIGITS, min_size=1, max_size=4))
def test_appending_after_any_fraction(fraction):
    fraction = fraction.rstrip("0")
    lower = "a0" + fraction
    key = generate_key_between(lower, None)
    assert key > lower
