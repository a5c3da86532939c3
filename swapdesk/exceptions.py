"""
swapdesk Exceptions

Custom exception classes for the offer exchange engine and its ledger
adapter. Every failure reaches the caller synchronously; nothing is
retried internally.
"""


class SwapDeskError(Exception):
    """Base exception for swapdesk."""
    pass


# ── Registry / input validation ───────────────────────────────────────

class TokenNotWhitelisted(SwapDeskError):
    """Offer references a token that is not whitelisted."""
    pass


class LengthMismatch(SwapDeskError):
    """Batch argument arrays have different lengths."""
    pass


class InvalidOfferParameters(SwapDeskError):
    """Price, amount, fee or batch size out of range."""
    pass


# ── Offer book ────────────────────────────────────────────────────────

class OfferNotFound(SwapDeskError):
    """No active offer exists under the given id."""
    pass


class NotSeller(SwapDeskError):
    """Caller is not the seller of the offer."""
    pass


# ── Settlement ────────────────────────────────────────────────────────

class NotReservedBuyer(SwapDeskError):
    """Private offer accepted by someone other than its reserved buyer."""
    pass


class OfferPriceWrong(SwapDeskError):
    """Price supplied by the buyer differs from the stored offer price."""
    pass


class SameBlockTrade(SwapDeskError):
    """Offer accepted in the settlement period it was created in."""
    pass


class TransferRejected(SwapDeskError):
    """The ledger refused to move funds."""
    pass


class InsufficientLiquidity(TransferRejected):
    """Requested amount exceeds the seller's spendable liquidity."""
    pass


class InsufficientBalance(TransferRejected):
    """Owner balance is lower than the transfer amount."""
    pass


class InsufficientAllowance(TransferRejected):
    """Spender allowance is lower than the transfer amount."""
    pass


class ComplianceRejected(TransferRejected):
    """A compliance rule denied the transfer."""
    pass


class SellerCannotTransfer(ComplianceRejected):
    """The seller is not allowed to move the offered token."""
    pass


class InvalidAuthorization(SwapDeskError):
    """Permit signature is malformed, expired, replayed or from the wrong owner."""
    pass


# ── Access control / administration ───────────────────────────────────

class NotAuthorized(SwapDeskError):
    """Caller lacks the role required by the operation."""
    pass


class NotModeratorOrAdmin(NotAuthorized):
    """Caller holds neither the moderator nor the admin role."""
    pass


class ContractPaused(SwapDeskError):
    """Mutating operation attempted while the engine is paused."""
    pass


class NativeTransferRejected(SwapDeskError):
    """The engine does not accept native currency."""
    pass


class UnknownToken(SwapDeskError):
    """Token address is not known to the ledger."""
    pass
