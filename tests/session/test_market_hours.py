from datetime import datetime, timedelta, timezone

import pytest

from otcfeed.session.market_hours import MarketHoursCalendar

# 2025-01-03 is a Friday
FRI = datetime(2025, 1, 3)
SAT = datetime(2025, 1, 4)
SUN = datetime(2025, 1, 5)
MON = datetime(2025, 1, 6)


@pytest.fixture
def cal():
    return MarketHoursCalendar()


@pytest.mark.parametrize(
    "at, is_open",
    [
        (FRI.replace(hour=21, minute=59), True),
        (FRI.replace(hour=22), False),
        (SAT.replace(hour=12), False),
        (SUN.replace(hour=21, minute=59), False),
        (SUN.replace(hour=22), True),
        (MON.replace(hour=3), True),
    ],
)
def test_forex_weekend_close(cal, at, is_open):
    assert cal.is_open("FOREX", at) is is_open


@pytest.mark.parametrize(
    "at, is_open",
    [
        (MON.replace(hour=14, minute=29), False),
        (MON.replace(hour=14, minute=30), True),
        (MON.replace(hour=20, minute=59), True),
        (MON.replace(hour=21), False),
        (SAT.replace(hour=15), False),
    ],
)
def test_stock_regular_session(cal, at, is_open):
    assert cal.is_open("STOCK", at) is is_open


def test_crypto_always_open(cal):
    for h in range(0, 24 * 7, 5):
        assert cal.is_open("CRYPTO", FRI + timedelta(hours=h))


def test_unknown_market_closed(cal):
    assert cal.is_open("COMMODITY", MON.replace(hour=15)) is False


def test_aware_datetime_is_converted(cal):
    # 23:00 at UTC+2 on Friday == 21:00 UTC, still open
    tz = timezone(timedelta(hours=2))
    assert cal.is_open("FOREX", datetime(2025, 1, 3, 23, 0, tzinfo=tz))


def test_session_next_open_when_closed(cal):
    s = cal.session("FOREX", SAT.replace(hour=12))
    assert not s.is_open
    assert s.next_open == datetime(2025, 1, 5, 22, 0, tzinfo=timezone.utc)
    assert s.next_close is None


def test_session_name_and_next_close(cal):
    s = cal.session("FOREX", MON.replace(hour=9))
    assert s.is_open
    assert s.current_session == "London"
    assert s.next_close == datetime(2025, 1, 10, 22, 0, tzinfo=timezone.utc)

    stock = cal.session("STOCK", MON.replace(hour=15))
    assert stock.current_session == "US Market"
    assert stock.next_close == datetime(2025, 1, 6, 21, 0, tzinfo=timezone.utc)


def test_crypto_session(cal):
    s = cal.session("crypto", SAT)
    assert s.is_open and s.current_session == "24/7"
