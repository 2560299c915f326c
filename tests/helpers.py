from datetime import date, datetime, timedelta, timezone

PASSWORD = "correct-horse-42"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def in_days(n: int) -> date:
    return utc_today() + timedelta(days=n)
