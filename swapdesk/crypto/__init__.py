"""
swapdesk Crypto Module

- keccak256 hashing
- checksum address helpers
- EIP-712 typed data signing and recovery (secp256k1 via eth_keys)
- EIP-2612 permit messages
"""

from .hashing import keccak256, keccak256_hex, keccak256_text
from .address import (
    derive_address,
    is_valid_address,
    is_zero_address,
    normalize_address,
)
from .signing import (
    private_key_to_address,
    recover_typed_data_signer,
    sign_typed_data,
    typed_data_hash,
)
from .permit import (
    Permit,
    PermitDomain,
    permit_struct_hash,
    recover_permit_signer,
    sign_permit,
)

__all__ = [
    "keccak256",
    "keccak256_hex",
    "keccak256_text",
    "derive_address",
    "is_valid_address",
    "is_zero_address",
    "normalize_address",
    "private_key_to_address",
    "recover_typed_data_signer",
    "sign_typed_data",
    "typed_data_hash",
    "Permit",
    "PermitDomain",
    "permit_struct_hash",
    "recover_permit_signer",
    "sign_permit",
]
