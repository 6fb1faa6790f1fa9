"""
Input checks for engine entry points.

Each check returns (ok, reason) so callers decide which error to raise.
The engine turns a failed check into InvalidParameters before touching any
state:
- addresses are 20 non-zero bytes
- hashes and commit ids are 32 bytes
- amounts, prices and nonces fit in a uint256 word
- cleanup batches stay within the configured size
"""

from typing import Any, Optional, Tuple

from liqauction.crypto import ADDRESS_SIZE, WORD_SIZE, UINT256_MAX

Check = Tuple[bool, str]

MAX_ARRAY_LENGTH = 256
MIN_AMOUNT = 0
MAX_AMOUNT = UINT256_MAX

_OK: Check = (True, "")


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Check:
    """
    Check a raw byte string.

    Args:
        data: Candidate value
        name: Parameter name used in the reason
        expected_length: Required exact size
        max_length: Upper size bound
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name}: expected bytes, got {type(data).__name__}"
    size = len(data)
    if expected_length is not None and size != expected_length:
        return False, f"{name}: expected {expected_length} bytes, got {size}"
    if max_length is not None and size > max_length:
        return False, f"{name}: {size} bytes exceeds limit of {max_length}"
    return _OK


def validate_address(address: Any, name: str = "address") -> Check:
    """20-byte account; the zero address is never a valid participant."""
    ok, reason = validate_bytes(address, name, expected_length=ADDRESS_SIZE)
    if ok and not any(address):
        return False, f"{name}: zero address not allowed"
    return ok, reason


def validate_hash(hash_value: Any, name: str = "hash") -> Check:
    return validate_bytes(hash_value, name, expected_length=WORD_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Check:
    """Check that `value` is a plain int in [min_val, max_val]."""
    # bool is an int subclass; a flag is never an amount
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name}: expected int, got {type(value).__name__}"
    if not min_val <= value <= max_val:
        return False, f"{name}: {value} outside [{min_val}, {max_val}]"
    return _OK


def validate_amount(amount: Any, name: str = "amount") -> Check:
    """Token amount, price or nonce: any uint256."""
    return validate_integer(amount, name)


def validate_array(data: Any, name: str, max_length: int = MAX_ARRAY_LENGTH) -> Check:
    """Check a batch of ids passed as a list or tuple."""
    if not isinstance(data, (list, tuple)):
        return False, f"{name}: expected list or tuple, got {type(data).__name__}"
    if len(data) > max_length:
        return False, f"{name}: batch of {len(data)} exceeds limit of {max_length}"
    return _OK


__all__ = [
    "Check",
    "validate_bytes",
    "validate_address",
    "validate_hash",
    "validate_integer",
    "validate_amount",
    "validate_array",
    "MAX_ARRAY_LENGTH",
]
