from otcfeed.session.market_hours import MarketHoursCalendar
from otcfeed.session.session_resolver import MarketSession, SessionCalendar

__all__ = ["MarketHoursCalendar", "MarketSession", "SessionCalendar"]
