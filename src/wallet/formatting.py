"""Formatting utilities for wallet passes.

This module handles date parsing and formatting and color conversion for
wallet pass content. Both Apple and Google passes use these helpers so the
two formats show the same date text for the same ticket.
"""

import re
from datetime import date, datetime, time

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from wallet.images import parse_hex_color

_DOORS_TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")


def hex_to_rgb_string(hex_color: str) -> str:
    """Convert a hex color to Apple's ``rgb(r, g, b)`` notation.

    Args:
        hex_color: Color such as "#8B5CF6".

    Returns:
        Color string in format "rgb(r, g, b)".
    """
    r, g, b = parse_hex_color(hex_color)
    return f"rgb({r}, {g}, {b})"


def normalize_hex_color(hex_color: str) -> str:
    """Normalize a tenant color to the ``#rrggbb`` form Google Wallet accepts."""
    r, g, b = parse_hex_color(hex_color)
    return f"#{r:02x}{g:02x}{b:02x}"


def parse_event_date(value: str | None) -> datetime | None:
    """Parse an ISO 8601 date or datetime string.

    Date-only values are taken as midnight. Naive values are interpreted in
    the default time zone.

    Args:
        value: The event date as stored on the event.

    Returns:
        An aware datetime, or None if the value is empty or not a valid date.
    """
    if not value:
        return None

    try:
        parsed = parse_datetime(value)
        if parsed is None:
            day: date | None = parse_date(value)
            if day is None:
                return None
            parsed = datetime.combine(day, time.min)
    except ValueError:
        # Well-formed but impossible, e.g. "2026-02-30"
        return None

    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def format_iso_date(dt: datetime) -> str:
    """Format a datetime for Apple's expected ISO 8601 format.

    Apple requires the colon in timezone offset (+00:00, not +0000).

    Args:
        dt: The datetime to format.

    Returns:
        ISO 8601 formatted string with colon in timezone.
    """
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)

    formatted = dt.strftime("%Y-%m-%dT%H:%M:%S%z")

    # Insert colon in timezone offset: +0000 -> +00:00
    if len(formatted) >= 5 and formatted[-5] in ("+", "-"):
        formatted = formatted[:-2] + ":" + formatted[-2:]

    return formatted


def format_display_date(dt: datetime, doors_time: str | None = None) -> str:
    """Format the event date for the front of the pass.

    Args:
        dt: The event start.
        doors_time: Optional doors opening time, e.g. "21:00".

    Returns:
        Formatted string like "Thu 27 Mar 2026 · Doors 21:00".
    """
    formatted = f"{dt:%a} {dt.day} {dt:%b %Y}"
    if doors_time:
        return f"{formatted} · Doors {doors_time}"
    return formatted


def format_doors_open(dt: datetime, doors_time: str | None) -> str | None:
    """Combine the event day with a doors time as a local ISO datetime.

    Args:
        dt: The event start (only its date is used).
        doors_time: Doors time as "HH:MM".

    Returns:
        String like "2026-03-27T21:00:00", or None without a valid doors time.
    """
    if not doors_time or not _DOORS_TIME_RE.match(doors_time):
        return None
    hours, minutes = doors_time.split(":")
    return f"{dt.date().isoformat()}T{int(hours):02d}:{minutes}:00"
