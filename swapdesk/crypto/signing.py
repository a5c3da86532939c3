"""
swapdesk Crypto Signing Module

EIP-712 typed data signing and signer recovery over secp256k1.
"""

from typing import Tuple, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import decode_hex

from .hashing import keccak256

PrivateKeyLike = Union[keys.PrivateKey, bytes, str]


def to_private_key(private_key: PrivateKeyLike) -> keys.PrivateKey:
    """Accept an eth_keys PrivateKey, raw 32 bytes or a hex string."""
    if isinstance(private_key, keys.PrivateKey):
        return private_key
    if isinstance(private_key, str):
        private_key = decode_hex(private_key)
    return keys.PrivateKey(private_key)


def typed_data_hash(domain_separator: bytes, struct_hash: bytes) -> bytes:
    """EIP-712: keccak256(0x19 0x01 || domainSeparator || structHash)."""
    return keccak256(b"\x19\x01" + domain_separator + struct_hash)


def sign_typed_data(
    private_key: PrivateKeyLike,
    domain_separator: bytes,
    struct_hash: bytes,
) -> Tuple[int, bytes, bytes]:
    """
    Sign typed data (EIP-712 style).

    Args:
        private_key: key to sign with
        domain_separator: EIP-712 domain separator
        struct_hash: Hash of the struct to sign

    Returns:
        (v, r, s) with v in {27, 28} and r, s as 32-byte big-endian values
    """
    signature = to_private_key(private_key).sign_msg_hash(
        typed_data_hash(domain_separator, struct_hash)
    )
    return (
        signature.v + 27,
        signature.r.to_bytes(32, "big"),
        signature.s.to_bytes(32, "big"),
    )


def recover_typed_data_signer(
    domain_separator: bytes,
    struct_hash: bytes,
    v: int,
    r: bytes,
    s: bytes,
) -> str:
    """
    Recover the checksum address that produced an EIP-712 signature.

    Raises:
        ValueError: if the signature components are malformed or unrecoverable
    """
    if v >= 27:
        v -= 27
    try:
        signature = keys.Signature(vrs=(v, int.from_bytes(r, "big"), int.from_bytes(s, "big")))
        public_key = signature.recover_public_key_from_msg_hash(
            typed_data_hash(domain_separator, struct_hash)
        )
    except (BadSignature, ValidationError) as e:
        raise ValueError(f"Unrecoverable signature: {e}") from e
    return public_key.to_checksum_address()


def private_key_to_address(private_key: PrivateKeyLike) -> str:
    return to_private_key(private_key).public_key.to_checksum_address()
