"""
swapdesk

Peer-to-peer offer-based token exchange engine.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from swapdesk.exchange import OfferExchange, TokenType
    from swapdesk.tokens import TokenLedger
    from swapdesk.exceptions import OfferNotFound
"""

from .constants import ENGINE_VERSION

__version__ = ENGINE_VERSION


def __getattr__(name):
    """Lazy loading of the main entry points."""
    if name == 'OfferExchange':
        from .exchange import OfferExchange
        return OfferExchange
    elif name == 'TokenLedger':
        from .tokens import TokenLedger
        return TokenLedger
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'swapdesk' has no attribute {name!r}")


__all__ = ['OfferExchange', 'TokenLedger', 'load_config', '__version__']
