"""
EIP-2612 permit messages.

A permit is an owner's signature over
``Permit(owner, spender, value, nonce, deadline)`` under the token's EIP-712
domain. Redeeming it sets ``allowance(owner, spender) = value`` without a
prior approve call.
"""

from dataclasses import dataclass
from typing import Any, Dict

from eth_utils import decode_hex, encode_hex

from .address import address_to_word
from .hashing import keccak256, keccak256_text
from .signing import PrivateKeyLike, private_key_to_address, recover_typed_data_signer, sign_typed_data
from ..constants import EIP712_DOMAIN_TYPE, PERMIT_TYPE, PERMIT_VERSION

EIP712_DOMAIN_TYPEHASH = keccak256_text(EIP712_DOMAIN_TYPE)
PERMIT_TYPEHASH = keccak256_text(PERMIT_TYPE)


def _uint256(value: int) -> bytes:
    if value < 0 or value >= 2 ** 256:
        raise ValueError(f"uint256 out of range: {value}")
    return value.to_bytes(32, "big")


@dataclass(frozen=True)
class PermitDomain:
    """EIP-712 domain of a permit-capable token."""
    name: str
    chain_id: int
    verifying_contract: str
    version: str = PERMIT_VERSION

    def separator(self) -> bytes:
        return keccak256(
            EIP712_DOMAIN_TYPEHASH
            + keccak256_text(self.name)
            + keccak256_text(self.version)
            + _uint256(self.chain_id)
            + address_to_word(self.verifying_contract)
        )


@dataclass(frozen=True)
class Permit:
    """
    Signed allowance grant attached to a ``*_with_permit`` call.

    The owner, spender and nonce are not carried: they are implied by the
    call (caller, engine address, current ledger nonce) and any mismatch
    makes the recovered signer differ from the owner.
    """
    value: int
    deadline: int
    v: int
    r: bytes
    s: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "deadline": self.deadline,
            "v": self.v,
            "r": encode_hex(self.r),
            "s": encode_hex(self.s),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Permit":
        return cls(
            value=int(data["value"]),
            deadline=int(data["deadline"]),
            v=int(data["v"]),
            r=decode_hex(data["r"]) if isinstance(data["r"], str) else bytes(data["r"]),
            s=decode_hex(data["s"]) if isinstance(data["s"], str) else bytes(data["s"]),
        )


def permit_struct_hash(owner: str, spender: str, value: int, nonce: int, deadline: int) -> bytes:
    return keccak256(
        PERMIT_TYPEHASH
        + address_to_word(owner)
        + address_to_word(spender)
        + _uint256(value)
        + _uint256(nonce)
        + _uint256(deadline)
    )


def sign_permit(
    private_key: PrivateKeyLike,
    domain: PermitDomain,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
) -> Permit:
    """Produce a permit for the key's address (client side)."""
    owner = private_key_to_address(private_key)
    v, r, s = sign_typed_data(
        private_key,
        domain.separator(),
        permit_struct_hash(owner, spender, value, nonce, deadline),
    )
    return Permit(value=value, deadline=deadline, v=v, r=r, s=s)


def recover_permit_signer(
    domain: PermitDomain,
    permit: Permit,
    owner: str,
    spender: str,
    nonce: int,
) -> str:
    """
    Recover the signer of ``permit`` for the given owner/spender/nonce.

    Raises:
        ValueError: if the signature cannot be recovered
    """
    return recover_typed_data_signer(
        domain.separator(),
        permit_struct_hash(owner, spender, permit.value, nonce, permit.deadline),
        permit.v,
        permit.r,
        permit.s,
    )
