from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from ..config import SWIPE_TIMEZONE


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def local_today(now: datetime | None = None, tz: str = SWIPE_TIMEZONE) -> date:
    return (now or now_utc()).astimezone(ZoneInfo(tz)).date()


def start_of_local_day(now: datetime | None = None, tz: str = SWIPE_TIMEZONE) -> datetime:
    """Midnight of the current server-local day, as an aware datetime."""
    zone = ZoneInfo(tz)
    local_now = (now or now_utc()).astimezone(zone)
    return datetime(local_now.year, local_now.month, local_now.day, tzinfo=zone)


def years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return day.replace(year=day.year - years, day=28)


def calendar_age(birth_date: date, today: date) -> int:
    return today.year - birth_date.year - ((today.month, today.day) < (birth_date.month, birth_date.day))


def day_after(day: date) -> date:
    return day + timedelta(days=1)
