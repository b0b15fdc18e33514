from .context import ContextService, VaultContext
from .membership import MembershipContextService, RotatedKeys

__all__ = [
    "ContextService",
    "VaultContext",
    "MembershipContextService",
    "RotatedKeys",
]
