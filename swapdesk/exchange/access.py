"""
Access control and pause gate

Role assignments (Admin, Moderator, Upgrader) and the pause switch. The
engine declares the capability each operation needs with the
``requires_role`` and ``when_not_paused`` decorators, so the checks run
before any handler logic and are written once.
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from ..crypto.address import normalize_address
from ..crypto.hashing import keccak256_text
from ..exceptions import ContractPaused, NotAuthorized
from .events import Paused, RoleGranted, RoleRevoked, Unpaused

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "DEFAULT_ADMIN_ROLE"
    MODERATOR = "MODERATOR_ROLE"
    UPGRADER = "UPGRADER_ROLE"

    @property
    def role_id(self) -> str:
        """32-byte role identifier; the admin role is the zero word."""
        if self is Role.ADMIN:
            return "0x" + "00" * 32
        return "0x" + keccak256_text(self.value).hex()


class AccessControl:
    """
    Role registry plus pause switch.

    ``Role.ADMIN`` administers every role. Events are handed to ``emit``
    so they land in the owning engine's log.
    """

    def __init__(
        self,
        admin: str,
        moderator: Optional[str] = None,
        emit: Optional[Callable[[Any], None]] = None,
    ):
        self._members: Dict[Role, Set[str]] = {role: set() for role in Role}
        self._paused = False
        self._emit = emit or (lambda event: None)

        self._members[Role.ADMIN].add(normalize_address(admin))
        if moderator:
            self._members[Role.MODERATOR].add(normalize_address(moderator))

    # ── Queries ───────────────────────────────────────────────────────

    def has_role(self, role: Role, account: str) -> bool:
        return normalize_address(account) in self._members[Role(role)]

    def members(self, role: Role) -> Set[str]:
        return set(self._members[Role(role)])

    @property
    def paused(self) -> bool:
        return self._paused

    # ── Checks ────────────────────────────────────────────────────────

    def require_role(
        self,
        account: str,
        *roles: Role,
        error: type = NotAuthorized,
        message: Optional[str] = None,
    ) -> None:
        """
        Pass if ``account`` holds any of ``roles``.

        Raises:
            error: (NotAuthorized by default) with ``message`` or a text
                naming the first missing role
        """
        if any(self.has_role(role, account) for role in roles):
            return
        raise error(
            message
            or f"AccessControl: account {account.lower()} is missing role {Role(roles[0]).role_id}"
        )

    def require_not_paused(self) -> None:
        if self._paused:
            raise ContractPaused("Pausable: paused")

    # ── Role management ───────────────────────────────────────────────

    def grant_role(self, caller: str, role: Role, account: str) -> bool:
        """Grant ``role`` to ``account``. Returns False if already held."""
        self.require_role(caller, Role.ADMIN)
        role = Role(role)
        account = normalize_address(account)
        if account in self._members[role]:
            return False
        self._members[role].add(account)
        self._emit(RoleGranted(role.value, account, normalize_address(caller)))
        logger.info("Role %s granted to %s by %s", role.value, account, caller)
        return True

    def revoke_role(self, caller: str, role: Role, account: str) -> bool:
        """Revoke ``role`` from ``account``. Returns False if not held."""
        self.require_role(caller, Role.ADMIN)
        role = Role(role)
        account = normalize_address(account)
        if account not in self._members[role]:
            return False
        self._members[role].discard(account)
        self._emit(RoleRevoked(role.value, account, normalize_address(caller)))
        logger.info("Role %s revoked from %s by %s", role.value, account, caller)
        return True

    # ── Pause ─────────────────────────────────────────────────────────

    def pause(self, caller: str) -> None:
        self.require_role(caller, Role.ADMIN)
        self.require_not_paused()
        self._paused = True
        self._emit(Paused(normalize_address(caller)))
        logger.warning("Exchange PAUSED by %s", caller)

    def unpause(self, caller: str) -> None:
        self.require_role(caller, Role.ADMIN)
        if not self._paused:
            raise ContractPaused("Pausable: not paused")
        self._paused = False
        self._emit(Unpaused(normalize_address(caller)))
        logger.info("Exchange UNPAUSED by %s", caller)

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return {
            "members": {role: set(accounts) for role, accounts in self._members.items()},
            "paused": self._paused,
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self._members = {role: set(accounts) for role, accounts in snapshot["members"].items()}
        self._paused = snapshot["paused"]


# ---------------------------------------------------------------------------
# Capability-check decorators for engine methods taking ``caller`` first
# ---------------------------------------------------------------------------

def requires_role(*roles: Role, error: type = NotAuthorized, message: Optional[str] = None):
    """Reject the call unless ``caller`` holds one of ``roles``."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, caller, *args, **kwargs):
            self.access.require_role(caller, *roles, error=error, message=message)
            return fn(self, caller, *args, **kwargs)
        wrapper.required_roles = roles
        return wrapper
    return decorator


def when_not_paused(fn):
    """Reject the call with ContractPaused while the engine is paused."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        self.access.require_not_paused()
        return fn(self, *args, **kwargs)
    return wrapper
