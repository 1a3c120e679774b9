"""
Reference-date layouts for temporal key encodings.

Patterns name custom timestamp layouts by writing the reference moment
``Mon Jan 2 15:04:05 MST 2006`` (offset ``-07:00``) in the desired shape,
e.g. ``{day:2006-01-02}`` or ``{ts:utc:20060102150405}``. The renderer
scans the layout left to right, replacing the longest recognised reference
token at each position and copying every other character verbatim.

The three named RFC 3339 layouts used by the conversion engine are defined
here too, so every temporal encoding goes through the same renderer.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

RFC3339 = "2006-01-02T15:04:05Z07:00"
RFC3339_NANO = "2006-01-02T15:04:05.999999999Z07:00"
RFC3339_FIXED = "2006-01-02T15:04:05.000000000Z07:00"

NAMED_LAYOUTS: dict[str, str] = {
    "rfc3339": RFC3339,
    "rfc3339nano": RFC3339_NANO,
    "rfc3339fixed": RFC3339_FIXED,
}

_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _offset(dt: datetime, *, z: bool, colon: bool, hours_only: bool = False) -> str:
    delta = dt.utcoffset() or timedelta(0)
    if z and delta == timedelta(0):
        return "Z"
    minutes = int(delta.total_seconds()) // 60
    sign = "-" if minutes < 0 else "+"
    hh, mm = divmod(abs(minutes), 60)
    if hours_only:
        return f"{sign}{hh:02d}"
    return f"{sign}{hh:02d}:{mm:02d}" if colon else f"{sign}{hh:02d}{mm:02d}"


def _fraction(dt: datetime, digits: int, *, trim: bool) -> str:
    nanos = f"{dt.microsecond * 1000:09d}"[:digits]
    if trim:
        nanos = nanos.rstrip("0")
        return f".{nanos}" if nanos else ""
    return f".{nanos}"


def _hour12(dt: datetime) -> int:
    return dt.hour % 12 or 12


def _zone_name(dt: datetime) -> str:
    name = dt.tzname()
    if name is None:
        return "UTC"
    if name.startswith("UTC") and len(name) > 3:
        return _offset(dt, z=False, colon=False)
    return name


# Longest tokens first so "2006" wins over "2" and "Z07:00" over "Z0700".
_TOKENS: list[tuple[str, Callable[[datetime], str]]] = sorted(
    [
        ("January", lambda dt: _MONTHS[dt.month - 1]),
        ("Jan", lambda dt: _MONTHS[dt.month - 1][:3]),
        ("Monday", lambda dt: _DAYS[dt.weekday()]),
        ("Mon", lambda dt: _DAYS[dt.weekday()][:3]),
        ("MST", _zone_name),
        ("2006", lambda dt: f"{dt.year:04d}"),
        ("06", lambda dt: f"{dt.year % 100:02d}"),
        ("01", lambda dt: f"{dt.month:02d}"),
        ("1", lambda dt: str(dt.month)),
        ("002", lambda dt: f"{dt.timetuple().tm_yday:03d}"),
        ("02", lambda dt: f"{dt.day:02d}"),
        ("_2", lambda dt: f"{dt.day:>2d}"),
        ("2", lambda dt: str(dt.day)),
        ("15", lambda dt: f"{dt.hour:02d}"),
        ("03", lambda dt: f"{_hour12(dt):02d}"),
        ("3", lambda dt: str(_hour12(dt))),
        ("04", lambda dt: f"{dt.minute:02d}"),
        ("4", lambda dt: str(dt.minute)),
        ("05", lambda dt: f"{dt.second:02d}"),
        ("5", lambda dt: str(dt.second)),
        ("PM", lambda dt: "PM" if dt.hour >= 12 else "AM"),
        ("pm", lambda dt: "pm" if dt.hour >= 12 else "am"),
        ("Z07:00", lambda dt: _offset(dt, z=True, colon=True)),
        ("Z0700", lambda dt: _offset(dt, z=True, colon=False)),
        ("Z07", lambda dt: _offset(dt, z=True, colon=False, hours_only=True)),
        ("-07:00", lambda dt: _offset(dt, z=False, colon=True)),
        ("-0700", lambda dt: _offset(dt, z=False, colon=False)),
        ("-07", lambda dt: _offset(dt, z=False, colon=False, hours_only=True)),
        *[("." + "0" * n, lambda dt, n=n: _fraction(dt, n, trim=False)) for n in range(1, 10)],
        *[("." + "9" * n, lambda dt, n=n: _fraction(dt, n, trim=True)) for n in range(1, 10)],
    ],
    key=lambda item: len(item[0]),
    reverse=True,
)


def render_layout(dt: datetime, layout: str) -> str:
    """
    Render ``dt`` using a reference-date layout.

    Naive datetimes are treated as UTC.

    Examples:
        >>> from datetime import datetime, timezone
        >>> ts = datetime(2024, 3, 9, 7, 5, 1, tzinfo=timezone.utc)
        >>> render_layout(ts, "2006-01-02")
        '2024-03-09'
        >>> render_layout(ts, RFC3339)
        '2024-03-09T07:05:01Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    out: list[str] = []
    i = 0
    while i < len(layout):
        for token, render in _TOKENS:
            if layout.startswith(token, i):
                out.append(render(dt))
                i += len(token)
                break
        else:
            out.append(layout[i])
            i += 1
    return "".join(out)


__all__ = [
    "RFC3339",
    "RFC3339_NANO",
    "RFC3339_FIXED",
    "NAMED_LAYOUTS",
    "render_layout",
]
