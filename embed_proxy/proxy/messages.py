"""
Per-transaction values passed between the proxy stages.

Headers are kept as ``httpx.Headers`` everywhere: lookups are
case-insensitive and repeated header names keep all of their values.
"""

from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx


async def _noop_close() -> None:
    return None


@dataclass
class InboundRequest:
    method: str
    path: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Optional[AsyncIterator[bytes]] = None
    client_host: Optional[str] = None


@dataclass
class OutboundRequest:
    method: str
    url: str
    headers: httpx.Headers
    body: Optional[AsyncIterator[bytes]] = None


@dataclass
class UpstreamResponse:
    status_code: int
    headers: httpx.Headers
    stream: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]] = _noop_close
