"""
Database-agnostic date helpers.

Raw SQL rows come back as date/datetime objects from PostgreSQL and as ISO
strings from SQLite; these helpers give the API one shape for both.
"""

from datetime import date, datetime

from dateutil import parser as date_parser


def format_date_for_api(dt: datetime | date | str | None) -> str | None:
    """
    Consistently format dates for API responses.

    Examples:
        >>> format_date_for_api(datetime(2026, 1, 10, 14, 30, 45))
        '2026-01-10 14:30:45'
        >>> format_date_for_api(date(2026, 1, 10))
        '2026-01-10'
        >>> format_date_for_api(None)
        None
    """
    if dt is None:
        return None

    if isinstance(dt, datetime):
        return dt.strftime('%Y-%m-%d %H:%M:%S')
    elif isinstance(dt, date):
        return dt.strftime('%Y-%m-%d')
    else:
        # Handle string passthrough
        return str(dt)


def extract_date(dt: date | datetime | str | None) -> date | None:
    """
    Extract the date portion from a date, datetime or date/datetime string.

    Returns None for None or unparseable input.
    """
    if dt is None:
        return None

    if isinstance(dt, datetime):
        return dt.date()
    if isinstance(dt, date):
        return dt

    try:
        return date_parser.isoparse(str(dt)).date()
    except (ValueError, OverflowError):
        return None
