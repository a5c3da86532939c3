"""
swapdesk Address Utilities

Addresses are 20-byte Ethereum-style identifiers carried around in
EIP-55 checksum form.
"""

from eth_utils import is_hex_address, to_canonical_address, to_checksum_address

from .hashing import keccak256_text
from ..constants import ZERO_ADDRESS


def is_valid_address(address: str) -> bool:
    return isinstance(address, str) and is_hex_address(address)


def normalize_address(address: str) -> str:
    """
    Return the checksum form of an address.

    Raises:
        ValueError: if the value is not a 20-byte hex address
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def is_zero_address(address: str) -> bool:
    return not address or normalize_address(address) == to_checksum_address(ZERO_ADDRESS)


def derive_address(seed: str) -> str:
    """Deterministic address for a named entity (last 20 bytes of keccak)."""
    return to_checksum_address(keccak256_text(seed)[-20:])


def address_to_word(address: str) -> bytes:
    """ABI-encode an address as a left-padded 32-byte word."""
    return b"\x00" * 12 + to_canonical_address(address)
