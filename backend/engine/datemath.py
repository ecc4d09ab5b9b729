from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

_EXPR_RE = re.compile(r"^now(?P<ops>(?:[+-]\d+[smhdwMy])*)(?:/(?P<round>[smhdwMy]))?$")
_OP_RE = re.compile(r"([+-])(\d+)([smhdwMy])")

_FIXED_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}


def _add_months(t: datetime, months: int) -> datetime:
    y, m = divmod(t.month - 1 + months, 12)
    year = t.year + y
    month = m + 1
    # Clamp day to the target month length.
    for day in (t.day, 30, 29, 28):
        try:
            return t.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    raise ValueError(f"Cannot shift {t} by {months} months")


def _round_down(t: datetime, unit: str) -> datetime:
    if unit == "s":
        return t.replace(microsecond=0)
    if unit == "m":
        return t.replace(second=0, microsecond=0)
    if unit == "h":
        return t.replace(minute=0, second=0, microsecond=0)
    if unit == "d":
        return t.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit == "w":
        d = t.replace(hour=0, minute=0, second=0, microsecond=0)
        return d - timedelta(days=d.weekday())
    if unit == "M":
        return t.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return t.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)


def resolve(expr: str, *, now: datetime | None = None) -> datetime:
    """
    Resolve an absolute ISO-8601 timestamp or a date-math expression to naive UTC.

    Supported date math: `now`, `now-15m`, `now+1d`, `now-1d/d` (units s m h d w M y).
    """
    raw = (expr or "").strip()
    if not raw:
        raise ValueError("Empty time expression")

    m = _EXPR_RE.match(raw)
    if m is None:
        t = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if t.tzinfo is not None:
            t = t.astimezone(timezone.utc).replace(tzinfo=None)
        return t

    t = now or datetime.now(timezone.utc).replace(tzinfo=None)
    for sign, amount, unit in _OP_RE.findall(m.group("ops") or ""):
        n = int(amount) * (1 if sign == "+" else -1)
        if unit == "M":
            t = _add_months(t, n)
        elif unit == "y":
            t = _add_months(t, 12 * n)
        else:
            t = t + _FIXED_UNITS[unit] * n
    if m.group("round"):
        t = _round_down(t, m.group("round"))
    return t
