"""Fractional indexing: string keys that sort between any two neighbours.

A key is an *integer part* followed by an optional *fractional part*, both
written in base 62 (``0-9A-Za-z``, which sorts in ASCII order).  The head
character of the integer part encodes its length: ``a`` to ``z`` for
non-negative integers of 2 to 27 characters, ``Z`` down to ``A`` for
negative ones.  The fractional part never ends in ``0``, so there is
always room for another key between two distinct keys.

Appending after the last key increments the integer part, which keeps
keys short for the common "type at the end of the document" pattern.
Inserting between two keys with the same integer part extends the
fractional part with the midpoint digit.

Examples
--------
>>> generate_key_between(None, None)
'a0'
>>> generate_key_between("a0", None)
'a1'
>>> generate_key_between("a0", "a1")
'a0V'
"""

from __future__ import annotations

from blocsync.errors import BlocSyncIndexError

BASE_62_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"

_INTEGER_ZERO = "a" + BASE_62_DIGITS[0]
_SMALLEST_INTEGER = "A" + BASE_62_DIGITS[0] * 26


def _midpoint(a: str, b: str | None, digits: str) -> str:
    """Return a fractional part strictly between *a* and *b*.

    *a* may be empty (meaning zero); *b* may be ``None`` (meaning one).
    Neither may end in the zero digit.
    """
    zero = digits[0]
    if b is not None and a >= b:
        raise BlocSyncIndexError(
            f"Fractional parts out of order: {a!r} >= {b!r}",
            context={"lower": a, "upper": b},
        )
    if a[-1:] == zero or (b is not None and b[-1:] == zero):
        raise BlocSyncIndexError(
            "Fractional part has a trailing zero",
            context={"lower": a, "upper": b},
        )

    if b is not None:
        # Skip the common prefix; a shorter `a` is padded with zeros.
        n = 0
        while (a[n] if n < len(a) else zero) == b[n]:
            n += 1
        if n > 0:
            return b[:n] + _midpoint(a[n:], b[n:], digits)

    digit_a = digits.index(a[0]) if a else 0
    digit_b = digits.index(b[0]) if b is not None else len(digits)
    if digit_b - digit_a > 1:
        return digits[(digit_a + digit_b + 1) // 2]

    # Adjacent first digits.
    if b is not None and len(b) > 1:
        return b[:1]
    return digits[digit_a] + _midpoint(a[1:], None, digits)


def _integer_length(head: str) -> int:
    if "a" <= head <= "z":
        return ord(head) - ord("a") + 2
    if "A" <= head <= "Z":
        return ord("Z") - ord(head) + 2
    raise BlocSyncIndexError(
        f"Invalid order key head: {head!r}",
        context={"key": head},
    )


def _validate_integer(integer: str) -> None:
    if len(integer) != _integer_length(integer[0]):
        raise BlocSyncIndexError(
            f"Invalid integer part of order key: {integer!r}",
            context={"key": integer},
        )


def _integer_part(key: str) -> str:
    length = _integer_length(key[0])
    if length > len(key):
        raise BlocSyncIndexError(
            f"Invalid order key: {key!r}",
            context={"key": key},
        )
    return key[:length]


def validate_order_key(key: str, digits: str = BASE_62_DIGITS) -> None:
    """Raise :class:`BlocSyncIndexError` if *key* is not a valid order key."""
    if not key:
        raise BlocSyncIndexError("Empty order key", context={"key": key})
    if key == _SMALLEST_INTEGER:
        raise BlocSyncIndexError(
            f"Invalid order key: {key!r}",
            context={"key": key},
        )
    integer = _integer_part(key)
    fraction = key[len(integer):]
    if fraction[-1:] == digits[0]:
        raise BlocSyncIndexError(
            f"Invalid order key (trailing zero): {key!r}",
            context={"key": key},
        )
    for ch in key[1:]:
        if ch not in digits:
            raise BlocSyncIndexError(
                f"Invalid order key digit {ch!r} in {key!r}",
                context={"key": key},
            )


def _increment_integer(x: str, digits: str) -> str | None:
    _validate_integer(x)
    head, digs = x[0], list(x[1:])
    carry = True
    for i in range(len(digs) - 1, -1, -1):
        if not carry:
            break
        d = digits.index(digs[i]) + 1
        if d == len(digits):
            digs[i] = digits[0]
        else:
            digs[i] = digits[d]
            carry = False
    if carry:
        if head == "Z":
            return "a" + digits[0]
        if head == "z":
            return None
        h = chr(ord(head) + 1)
        if h > "a":
            digs.append(digits[0])
        else:
            digs.pop()
        return h + "".join(digs)
    return head + "".join(digs)


def _decrement_integer(x: str, digits: str) -> str | None:
    _validate_integer(x)
    head, digs = x[0], list(x[1:])
    borrow = True
    for i in range(len(digs) - 1, -1, -1):
        if not borrow:
            break
        d = digits.index(digs[i]) - 1
        if d == -1:
            digs[i] = digits[-1]
        else:
            digs[i] = digits[d]
            borrow = False
    if borrow:
        if head == "a":
            return "Z" + digits[-1]
        if head == "A":
            return None
        h = chr(ord(head) - 1)
        if h < "Z":
            digs.append(digits[-1])
        else:
            digs.pop()
        return h + "".join(digs)
    return head + "".join(digs)


def generate_key_between(
    lower: str | None,
    upper: str | None,
    digits: str = BASE_62_DIGITS,
) -> str:
    """Return a key that sorts strictly between *lower* and *upper*.

    Parameters
    ----------
    lower:
        Key of the previous sibling, or ``None`` when inserting first.
    upper:
        Key of the next sibling, or ``None`` when inserting last.
    digits:
        Digit alphabet, in sort order.

    Returns
    -------
    str
        ``lower < key < upper`` for the bounds that are given.  With both
        bounds ``None`` the initial key ``"a0"`` is returned.

    Raises
    ------
    BlocSyncIndexError
        If ``lower >= upper`` or either key is malformed.  Existing keys
        are never rewritten, so an inverted pair can only mean the caller
        passed the wrong neighbours.
    """
    if lower is not None:
        validate_order_key(lower, digits)
    if upper is not None:
        validate_order_key(upper, digits)
    if lower is not None and upper is not None and lower >= upper:
        raise BlocSyncIndexError(
            f"Neighbour keys out of order: {lower!r} >= {upper!r}",
            context={"lower": lower, "upper": upper},
        )

    if lower is None:
        if upper is None:
            return _INTEGER_ZERO
        int_upper = _integer_part(upper)
        frac_upper = upper[len(int_upper):]
        if int_upper == _SMALLEST_INTEGER:
            return int_upper + _midpoint("", frac_upper, digits)
        if int_upper < upper:
            return int_upper
        result = _decrement_integer(int_upper, digits)
        if result is None:
            raise BlocSyncIndexError(
                "Cannot decrement any further",
                context={"upper": upper},
            )
        return result

    if upper is None:
        int_lower = _integer_part(lower)
        frac_lower = lower[len(int_lower):]
        incremented = _increment_integer(int_lower, digits)
        if incremented is None:
            return int_lower + _midpoint(frac_lower, None, digits)
        return incremented

    int_lower = _integer_part(lower)
    frac_lower = lower[len(int_lower):]
    int_upper = _integer_part(upper)
    frac_upper = upper[len(int_upper):]
    if int_lower == int_upper:
        return int_lower + _midpoint(frac_lower, frac_upper, digits)
    incremented = _increment_integer(int_lower, digits)
    if incremented is None:
        raise BlocSyncIndexError(
            "Cannot increment any further",
            context={"lower": lower},
        )
    if incremented < upper:
        return incremented
    return int_lower + _midpoint(frac_lower, None, digits)


def generate_n_keys_between(
    lower: str | None,
    upper: str | None,
    n: int,
    digits: str = BASE_62_DIGITS,
) -> list[str]:
    """Return *n* ascending keys strictly between *lower* and *upper*.

    Splitting the interval recursively keeps the keys roughly as short as
    generating them one at a time in the middle would.
    """
    if n <= 0:
        return []
    if n == 1:
        return [generate_key_between(lower, upper, digits)]
    if upper is None:
        key = generate_key_between(lower, upper, digits)
        result = [key]
        for _ in range(n - 1):
            key = generate_key_between(key, upper, digits)
            result.append(key)
        return result
    if lower is None:
        key = generate_key_between(lower, upper, digits)
        result = [key]
        for _ in range(n - 1):
            key = generate_key_between(lower, key, digits)
            result.append(key)
        result.reverse()
        return result
    mid = n // 2
    key = generate_key_between(lower, upper, digits)
    return [
        *generate_n_keys_between(lower, key, mid, digits),
        key,
        *generate_n_keys_between(key, upper, n - mid - 1, digits),
    ]
