"""
Account and credential types.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Account:
    """One configured worker identity. Immutable for the process lifetime."""
    address: str
    index: int  # 1-based, diagnostics only
    egress: Optional[str] = None

    @property
    def egress_label(self) -> str:
        return self.egress or "No proxy"


@dataclass(frozen=True)
class Credential:
    """Bearer token for one account's active cycle. Never persisted."""
    token: str

    @property
    def display(self) -> str:
        """Short form safe for logs: first 36 and last 8 characters."""
        return f"{self.token[:36]}...{self.token[-8:]}"

    def __repr__(self) -> str:
        return f"Credential(token={self.display!r})"

    __str__ = __repr__
