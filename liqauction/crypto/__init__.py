"""
Cryptographic primitives for liqauction.

This module provides:
- Hashing (Keccak-256, SHA-256)
- Bidder key generation and address derivation (secp256k1)
- Bid commitments and commit identifiers for the sealed-bid phase

Design Notes:
-------------
Commitments use Ethereum-style packed encoding under Keccak-256 so a bidder
can compute them with any EVM toolchain:

    commitment = keccak256(bidder[20] || auction_id[32] || max_price[32] || nonce[32])

Commit identifiers additionally bind a registry-wide sequence number so two
commits in the same second never collide.
"""

import hashlib
import secrets
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ADDRESS_SIZE = 20
WORD_SIZE = 32
ZERO_HASH = bytes(WORD_SIZE)
UINT256_MAX = 2**256 - 1


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """Compute SHA-256 hash."""
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: commitments, commit identifiers, address derivation.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def uint256(value: int) -> bytes:
    """Encode a non-negative integer as a 32-byte big-endian word."""
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"Value {value} out of uint256 range")
    return value.to_bytes(WORD_SIZE, byteorder="big")


# =============================================================================
# Keys and Addresses
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key
        public_key: 64-byte uncompressed public key (x || y)
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> bytes:
        """20-byte address: last 20 bytes of keccak256(public_key)."""
        return address_from_public_key(self.public_key)

    @property
    def address_hex(self) -> str:
        return bytes_to_hex(self.address)


def generate_keypair() -> KeyPair:
    """Generate a new random keypair."""
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")

    # P = k * G, returned as (x, y) integers
    public_key_point = secp256k1.privtopub(private_key)
    x_bytes = public_key_point[0].to_bytes(32, byteorder="big")
    y_bytes = public_key_point[1].to_bytes(32, byteorder="big")

    return KeyPair(private_key=private_key, public_key=x_bytes + y_bytes)


def address_from_public_key(public_key: bytes) -> bytes:
    """Derive a 20-byte address from a 64-byte public key."""
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return keccak256(public_key)[-ADDRESS_SIZE:]


# =============================================================================
# Bid Commitments
# =============================================================================


def create_bid_commitment(bidder: bytes, auction_id: int, max_price: int, nonce: int) -> bytes:
    """
    Commit to a sealed bid.

    Args:
        bidder: 20-byte bidder address
        auction_id: Auction being bid on
        max_price: Highest per-unit price the bidder will pay
        nonce: Random blinding value, kept secret until reveal

    Returns:
        32-byte commitment
    """
    if len(bidder) != ADDRESS_SIZE:
        raise ValueError(f"Bidder must be {ADDRESS_SIZE} bytes, got {len(bidder)}")
    return keccak256(bidder + uint256(auction_id) + uint256(max_price) + uint256(nonce))


def derive_commit_id(bidder: bytes, auction_id: int, commit_time: int, sequence: int) -> bytes:
    """Identifier for a stored commitment."""
    return keccak256(bidder + uint256(auction_id) + uint256(commit_time) + uint256(sequence))


def random_nonce() -> int:
    """Fresh 256-bit blinding nonce."""
    return secrets.randbits(256)


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """0x-prefixed lowercase hex."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Parse hex, with or without a 0x/0X prefix."""
    if hex_str[:2] in ("0x", "0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """True for a 0x-prefixed, 40-hex-digit address string."""
    if not address.startswith("0x") or len(address) != 2 + 2 * ADDRESS_SIZE:
        return False
    try:
        bytes.fromhex(address[2:])
    except ValueError:
        return False
    return True
