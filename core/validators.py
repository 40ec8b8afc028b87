"""
core/validators.py -- Local input checks that run before any network call.

Everything here is pure: no I/O, no session state. A failed check raises
core.errors.ValidationError so the caller sees the problem before a request
is ever built.
"""

import re
from datetime import timedelta

from core.errors import ValidationError
from core.models import MAX_STATUS_LENGTH

# ISO-8601 duration restricted to days and time fields: PnDTnHnMn.nS.
# Years, months and weeks have no fixed length and are rejected.
_DURATION_RE = re.compile(
    r"^(?P<sign>[-+]?)P"
    r"(?:(?P<days>[-+]?\d+)D)?"
    r"(?P<time>T"
    r"(?:(?P<hours>[-+]?\d+)H)?"
    r"(?:(?P<minutes>[-+]?\d+)M)?"
    r"(?:(?P<seconds>[-+]?\d+)(?:[.,](?P<fraction>\d{0,9}))?S)?"
    r")?$",
    re.IGNORECASE,
)


def check_status_text(text: str) -> None:
    """Reject empty status text and text longer than MAX_STATUS_LENGTH characters."""
    if not text:
        raise ValidationError(f"Text is too short. (0 / {MAX_STATUS_LENGTH})")
    if len(text) > MAX_STATUS_LENGTH:
        raise ValidationError(f"Text is too long. ({len(text)} / {MAX_STATUS_LENGTH})")


def parse_duration(pattern: str) -> timedelta:
    """Parse an ISO-8601 duration such as "PT30M", "P1DT2H" or "PT90.5S".

    Raises ValidationError for anything that is not a complete duration,
    including the bare designators "P" and "PT".
    """
    m = _DURATION_RE.match(pattern.strip()) if pattern else None
    if m is None:
        raise ValidationError(f"Invalid duration: {pattern!r}. Expected ISO-8601 form like PT30M or P1DT2H.")

    days, hours, minutes, seconds = (m.group(g) for g in ("days", "hours", "minutes", "seconds"))
    if m.group("time") is not None and hours is None and minutes is None and seconds is None:
        raise ValidationError(f"Invalid duration: {pattern!r}. 'T' must be followed by a time field.")
    if days is None and m.group("time") is None:
        raise ValidationError(f"Invalid duration: {pattern!r}. No duration fields given.")

    fraction = m.group("fraction") or ""
    micros = int(fraction.ljust(6, "0")[:6]) if fraction else 0
    sec = int(seconds or 0)
    if sec < 0 or (sec == 0 and seconds is not None and seconds.startswith("-")):
        micros = -micros

    delta = timedelta(
        days=int(days or 0),
        hours=int(hours or 0),
        minutes=int(minutes or 0),
        seconds=sec,
        microseconds=micros,
    )
    return -delta if m.group("sign") == "-" else delta
