from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import List

from .models import TargetEntity

ICS_MEDIA_TYPE = "text/calendar; charset=utf-8"
EVENT_DURATION = timedelta(minutes=30)
UID_SUFFIX = "@target-locker"
PRODID = "-//Target Locker//EN"
CRLF = "\r\n"
MAX_LINE_OCTETS = 75

_LINE_BREAKS = re.compile(r"\r\n|\r|\n")


def format_utc(value: datetime) -> str:
    """Compact UTC form used by iCalendar, e.g. 20261019T070000Z."""
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def escape_text(value: str) -> str:
    """Collapse line breaks to single spaces and escape TEXT special characters."""
    flat = _LINE_BREAKS.sub(" ", value)
    return flat.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,")


def fold_line(line: str) -> str:
    """
    Fold a content line into chunks of at most 75 octets, continuation
    chunks starting with a single space. Never splits a UTF-8 sequence.
    """
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return line
    chunks: List[str] = []
    current = ""
    size = 0
    limit = MAX_LINE_OCTETS
    for ch in line:
        width = len(ch.encode("utf-8"))
        if size + width > limit:
            chunks.append(current)
            current, size = "", 0
            # continuation lines spend one octet on the leading space
            limit = MAX_LINE_OCTETS - 1
        current += ch
        size += width
    chunks.append(current)
    return (CRLF + " ").join(chunks)


# PUBLIC_INTERFACE
def export_ics(target: TargetEntity, now: datetime) -> str:
    """
    Serialize one target as a single-event iCalendar document.

    The event starts at due_at and lasts 30 minutes; DTSTAMP is `now`.
    DESCRIPTION is left out when the target has no notes.
    """
    start = target["due_at"]
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{target['id']}{UID_SUFFIX}",
        f"DTSTAMP:{format_utc(now)}",
        f"DTSTART:{format_utc(start)}",
        f"DTEND:{format_utc(start + EVENT_DURATION)}",
        f"SUMMARY:{escape_text(target['title'])}",
    ]
    notes = escape_text(target["notes"] or "")
    if notes.strip():
        lines.append(f"DESCRIPTION:{notes}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return CRLF.join(fold_line(line) for line in lines) + CRLF


def ics_filename(target: TargetEntity) -> str:
    return f"target-{target['id']}.ics"
