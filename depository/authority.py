"""
authority.py - Capability checks for governance calls

BondDepository never decides on its own who may create or close markets; it
asks an injected Authority whether a caller holds a named capability.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .core import (
    CAPABILITY_CREATE, CAPABILITY_CLOSE, CAPABILITY_SET_REWARDS, CAPABILITY_WHITELIST,
)


@runtime_checkable
class Authority(Protocol):
    """
    Protocol for authorization collaborators.

    guardian is also the account that receives DAO rewards.
    """
    guardian: str

    def is_authorized(self, caller: str, capability: str) -> bool:
        """Return True if caller may exercise capability."""
        ...


@dataclass(frozen=True, slots=True)
class RoleAuthority:
    """
    Four fixed roles, each holding a set of capabilities.

    policy: create, close, whitelist
    governor: set_rewards
    guardian, vault: no depository capabilities
    """
    governor: str
    guardian: str
    policy: str
    vault: str

    def __post_init__(self):
        for role in ('governor', 'guardian', 'policy', 'vault'):
            value = getattr(self, role)
            if not value or not value.strip():
                raise ValueError(f"{role} cannot be empty")

    def holder_of(self, capability: str) -> str:
        if capability in (CAPABILITY_CREATE, CAPABILITY_CLOSE, CAPABILITY_WHITELIST):
            return self.policy
        if capability == CAPABILITY_SET_REWARDS:
            return self.governor
        raise ValueError(f"unknown capability {capability!r}")

    def is_authorized(self, caller: str, capability: str) -> bool:
        try:
            return caller == self.holder_of(capability)
        except ValueError:
            return False
