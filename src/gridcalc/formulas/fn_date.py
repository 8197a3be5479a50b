"""Date formula functions: construction, field extraction, arithmetic."""

from __future__ import annotations

import calendar
import datetime
from typing import Any

from gridcalc.formulas.errors import FormulaDomainError, check_arity
from gridcalc.formulas.values import to_datetime, to_int, to_number


def _as_result(moment: datetime.datetime) -> datetime.date | datetime.datetime:
    """Return a plain date when there is no time-of-day component."""
    if moment.time() == datetime.time(0, 0):
        return moment.date()
    return moment


def _fn_now(args: list) -> datetime.datetime:
    check_arity("NOW", args, 0, 0)
    return datetime.datetime.now().replace(microsecond=0)


def _fn_today(args: list) -> datetime.date:
    check_arity("TODAY", args, 0, 0)
    return datetime.date.today()


def _fn_date(args: list) -> datetime.date:
    """DATE(year, month, day) -- construct a date."""
    check_arity("DATE", args, 3, 3)
    year, month, day = (to_int(a, "DATE") for a in args)
    try:
        return datetime.date(year, month, day)
    except ValueError as exc:
        raise FormulaDomainError("DATE", f"Invalid date: {exc}") from None


def _fn_time(args: list) -> datetime.time:
    """TIME(hour, minute [, second])."""
    check_arity("TIME", args, 2, 3)
    hour = to_int(args[0], "TIME")
    minute = to_int(args[1], "TIME")
    second = to_int(args[2], "TIME") if len(args) == 3 else 0
    try:
        return datetime.time(hour, minute, second)
    except ValueError as exc:
        raise FormulaDomainError("TIME", f"Invalid time: {exc}") from None


def _field(name: str, attr: str) -> Any:
    def _impl(args: list) -> float:
        check_arity(name, args, 1, 1)
        return float(getattr(to_datetime(args[0], name), attr))

    _impl.__name__ = f"_fn_{name.lower()}"
    return _impl


def _fn_weekday(args: list) -> float:
    """WEEKDAY(date) -- Sunday=1 .. Saturday=7."""
    check_arity("WEEKDAY", args, 1, 1)
    return float(to_datetime(args[0], "WEEKDAY").isoweekday() % 7 + 1)


def _fn_datediff(args: list) -> float:
    """DATEDIFF(start, end) -- days from start to end (fractional)."""
    check_arity("DATEDIFF", args, 2, 2)
    start = to_datetime(args[0], "DATEDIFF")
    end = to_datetime(args[1], "DATEDIFF")
    return (end - start).total_seconds() / 86400.0


def _fn_dateadd(args: list) -> datetime.date | datetime.datetime:
    """DATEADD(date, days)."""
    check_arity("DATEADD", args, 2, 2)
    start = to_datetime(args[0], "DATEADD")
    days = to_number(args[1], "DATEADD")
    try:
        return _as_result(start + datetime.timedelta(days=days))
    except OverflowError:
        raise FormulaDomainError("DATEADD", "DATEADD: date out of range") from None


def _fn_eomonth(args: list) -> datetime.date:
    """EOMONTH(start_date, months) -- end of month, offset by months.

    EOMONTH(DATE(2024,1,15), 1) => 2024-02-29 (last day of Feb 2024).
    """
    check_arity("EOMONTH", args, 2, 2)
    start = to_datetime(args[0], "EOMONTH")
    months_offset = to_int(args[1], "EOMONTH")
    total_months = (start.year * 12 + start.month - 1) + months_offset
    target_year = total_months // 12
    target_month = total_months % 12 + 1
    if not 1 <= target_year <= 9999:
        raise FormulaDomainError("EOMONTH", "EOMONTH: date out of range")
    last_day = calendar.monthrange(target_year, target_month)[1]
    return datetime.date(target_year, target_month, last_day)


DATE_FUNCTIONS: dict[str, Any] = {
    "NOW": _fn_now,
    "TODAY": _fn_today,
    "DATE": _fn_date,
    "TIME": _fn_time,
    "YEAR": _field("YEAR", "year"),
    "MONTH": _field("MONTH", "month"),
    "DAY": _field("DAY", "day"),
    "HOUR": _field("HOUR", "hour"),
    "MINUTE": _field("MINUTE", "minute"),
    "SECOND": _field("SECOND", "second"),
    "WEEKDAY": _fn_weekday,
    "DATEDIFF": _fn_datediff,
    "DATEADD": _fn_dateadd,
    "EOMONTH": _fn_eomonth,
}
