# otcfeed/session/session_resolver.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass(frozen=True)
class MarketSession:
    market_type: str
    is_open: bool
    current_session: Optional[str] = None   # e.g. "London", "US Market", "24/7"
    next_open: Optional[datetime] = None
    next_close: Optional[datetime] = None


class SessionCalendar(Protocol):
    """
    SessionCalendar Contract (Frozen)

    Sole responsibility:
      - tell whether the real market behind a market type is open at a UTC instant

    Naive datetimes are read as UTC.
    """

    def is_open(self, market_type: str, at: Optional[datetime] = None) -> bool:
        ...

    def session(self, market_type: str, at: Optional[datetime] = None) -> MarketSession:
        ...
