"""
Value types shared across the fleet.
"""

from .account import Account, Credential
from .capacity import CapacityProfile
from .rewards import ClaimResult, ClaimState, PointTotal, NOT_CLAIMED

__all__ = [
    "Account",
    "Credential",
    "CapacityProfile",
    "ClaimResult",
    "ClaimState",
    "PointTotal",
    "NOT_CLAIMED",
]
