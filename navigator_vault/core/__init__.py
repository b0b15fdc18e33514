"""Vault operations: vaults, memberships and the caller's profile."""

from .base import CoreModule, gather_all
from .membership import (
    AirdropResult,
    MembershipCreateResult,
    MembershipModule,
    MembershipResult,
    ensure_transition,
)
from .profile import ProfileModule
from .vault import VaultCreateResult, VaultModule

__all__ = [
    "CoreModule",
    "gather_all",
    "VaultModule",
    "VaultCreateResult",
    "MembershipModule",
    "MembershipResult",
    "MembershipCreateResult",
    "AirdropResult",
    "ensure_transition",
    "ProfileModule",
]
