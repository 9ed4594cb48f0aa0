"""
Outbound services: egress routing and the reward service client.
"""

from .egress import Egress, EgressKind, assign_egress, classify_egress
from .rewards_client import RewardsClient

__all__ = [
    "Egress",
    "EgressKind",
    "assign_egress",
    "classify_egress",
    "RewardsClient",
]
