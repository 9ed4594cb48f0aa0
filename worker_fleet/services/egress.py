"""
Network egress (proxy) handling.

HTTP(S) proxies are passed to aiohttp per request; SOCKS proxies need a
dedicated connector from aiohttp-socks. WebSocket connections take the
proxy URI directly.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import aiohttp
from aiohttp_socks import ProxyConnector


class EgressKind(str, Enum):
    """Supported proxy families."""
    HTTP = "http"
    SOCKS = "socks"


HTTP_SCHEMES = ("http://", "https://")
SOCKS_SCHEMES = ("socks4://", "socks5://")


def classify_egress(uri: Optional[str]) -> Optional[EgressKind]:
    """Return the proxy family for `uri`, or None for unknown schemes."""
    if not uri:
        return None
    lowered = uri.lower()
    if lowered.startswith(HTTP_SCHEMES):
        return EgressKind.HTTP
    if lowered.startswith(SOCKS_SCHEMES):
        return EgressKind.SOCKS
    return None


def assign_egress(position: int, egresses: Sequence[str]) -> Optional[str]:
    """
    Pick the egress for the account at 0-based `position`.

    Accounts wrap around the list when there are fewer proxies than
    accounts; an empty list means every account goes direct.
    """
    if not egresses:
        return None
    return egresses[position % len(egresses)]


@dataclass(frozen=True)
class Egress:
    """A recognized proxy URI and its family."""
    uri: str
    kind: EgressKind

    @classmethod
    def parse(cls, uri: Optional[str]) -> Optional["Egress"]:
        kind = classify_egress(uri)
        if kind is None:
            return None
        return cls(uri=uri, kind=kind)

    def http_connector(self) -> Optional[aiohttp.BaseConnector]:
        """Connector for aiohttp sessions; None means the default connector."""
        if self.kind is EgressKind.SOCKS:
            return ProxyConnector.from_url(self.uri)
        return None

    @property
    def http_proxy(self) -> Optional[str]:
        """Per-request proxy argument for aiohttp."""
        if self.kind is EgressKind.HTTP:
            return self.uri
        return None

    @property
    def websocket_proxy(self) -> str:
        return self.uri
