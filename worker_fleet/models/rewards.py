"""
Reward service payloads.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


NOT_CLAIMED = "Not Claimed"


@dataclass
class PointTotal:
    """Points gained today, from the realtime reward endpoint."""
    total_heartbeats: Any = "0"
    entries: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Any) -> "PointTotal":
        entries = data if isinstance(data, list) else []
        first = entries[0] if entries and isinstance(entries[0], dict) else {}
        return cls(
            total_heartbeats=first.get("total_heartbeats", "0"),
            entries=entries,
        )


class ClaimState(BaseModel):
    """Daily claim eligibility. Refetched on every poll, never cached."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tier: Optional[Any] = None
    daily_point: Optional[Any] = Field(default=None, alias="dailyPoint")
    claimed: Optional[bool] = None
    next_claim: Any = Field(default=NOT_CLAIMED, alias="nextClaim")

    @field_validator("next_claim", mode="before")
    @classmethod
    def default_next_claim(cls, v: Any) -> Any:
        return NOT_CLAIMED if v is None else v

    @property
    def should_claim(self) -> bool:
        return not self.claimed


@dataclass
class ClaimResult:
    """Raw payload returned by the claim endpoint."""
    payload: Any = None
