# otcfeed/session/market_hours.py
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from otcfeed.session.session_resolver import MarketSession

# weekday(): Monday = 0 ... Sunday = 6
FRIDAY, SATURDAY, SUNDAY = 4, 5, 6


class MarketHoursCalendar:
    """
    UTC market hours (simplified, no holidays):

      - FOREX : Sunday 22:00 → Friday 22:00, Saturday closed
      - STOCK : Monday–Friday 14:30–21:00 (NYSE regular session)
      - CRYPTO: always open
      - unknown market type → closed
    """

    FOREX_WEEKEND_CLOSE = time(22, 0)
    FOREX_SESSIONS = (
        ("Sydney", 22, 7),
        ("Tokyo", 0, 9),
        ("London", 8, 17),
        ("New York", 13, 22),
    )

    STOCK_OPEN = time(14, 30)
    STOCK_CLOSE = time(21, 0)

    # every open / close boundary falls on a half hour
    _STEP = timedelta(minutes=30)
    _HORIZON = timedelta(days=8)

    def is_open(self, market_type: str, at: Optional[datetime] = None) -> bool:
        t = self._utc(at)
        kind = market_type.upper()

        if kind == "CRYPTO":
            return True
        if kind == "FOREX":
            return self._forex_open(t)
        if kind in ("STOCK", "INDEX"):
            return self._stock_open(t)
        return False

    def session(self, market_type: str, at: Optional[datetime] = None) -> MarketSession:
        t = self._utc(at)
        kind = market_type.upper()
        is_open = self.is_open(kind, t)

        if kind == "CRYPTO":
            return MarketSession(market_type=kind, is_open=True, current_session="24/7")

        current = None
        if is_open:
            current = self._forex_session_name(t) if kind == "FOREX" else "US Market"

        return MarketSession(
            market_type=kind,
            is_open=is_open,
            current_session=current,
            next_open=None if is_open else self.next_transition(kind, t, to_open=True),
            next_close=self.next_transition(kind, t, to_open=False) if is_open else None,
        )

    def next_transition(self, market_type: str, at: datetime, to_open: bool) -> Optional[datetime]:
        """First half-hour boundary after `at` where is_open() == to_open."""
        t = self._utc(at)
        probe = t.replace(minute=30 if t.minute >= 30 else 0, second=0, microsecond=0)
        end = t + self._HORIZON
        while probe <= end:
            probe += self._STEP
            if self.is_open(market_type, probe) == to_open:
                return probe
        return None

    # ------------------------------------------------------------------
    # rules
    # ------------------------------------------------------------------

    def _forex_open(self, t: datetime) -> bool:
        day = t.weekday()
        if day == SATURDAY:
            return False
        if day == FRIDAY and t.time() >= self.FOREX_WEEKEND_CLOSE:
            return False
        if day == SUNDAY and t.time() < self.FOREX_WEEKEND_CLOSE:
            return False
        return True

    def _stock_open(self, t: datetime) -> bool:
        if t.weekday() >= SATURDAY:
            return False
        return self.STOCK_OPEN <= t.time() < self.STOCK_CLOSE

    def _forex_session_name(self, t: datetime) -> Optional[str]:
        hour = t.hour + t.minute / 60.0
        for name, open_h, close_h in self.FOREX_SESSIONS:
            if open_h < close_h:
                if open_h <= hour < close_h:
                    return name
            elif hour >= open_h or hour < close_h:
                return name
        return None

    @staticmethod
    def _utc(at: Optional[datetime]) -> datetime:
        if at is None:
            return datetime.now(timezone.utc)
        if at.tzinfo is None:
            return at.replace(tzinfo=timezone.utc)
        return at.astimezone(timezone.utc)
