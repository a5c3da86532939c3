"""
swapdesk Crypto Hashing Module

keccak256 helpers used for EIP-712 digests, role identifiers and
deterministic addresses.
"""

from typing import Union

from eth_utils import decode_hex, keccak


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    if isinstance(data, str):
        data = decode_hex(data)
    return keccak(data)


def keccak256_text(text: str) -> bytes:
    """Keccak-256 of a UTF-8 string (type strings, role names, domain names)."""
    return keccak(text=text)


def keccak256_hex(data: Union[bytes, str]) -> str:
    return "0x" + keccak256(data).hex()
