from datetime import date, datetime, time

# Order matters: the first format that parses wins, and the first one is the
# canonical format whose error is reported when nothing parses.
TIME_FORMATS = ["%H:%M", "%I:%M%p", "%I:%M %p", "%I%p", "%I %p"]
DATE_FORMATS = ["%d %B %Y", "%B %d %Y", "%Y-%m-%d", "%d/%m/%Y"]

MIDNIGHT = time(0, 0)


def _parse_first(text: str, formats: list[str]) -> datetime:
    text = text.strip()
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    # Re-run the canonical format so the error message is stable.
    return datetime.strptime(text, formats[0])


def parse_time(time_str: str) -> time:
    """Parses time strings like '20:00', '9:05', '8:30pm', '08:30 AM' or '8pm'."""
    return _parse_first(time_str, TIME_FORMATS).time()


def parse_date(date_str: str) -> date:
    """Parses date strings like '5 March 2024', 'March 5 2024', '2024-03-05' or '05/03/2024'."""
    return _parse_first(date_str, DATE_FORMATS).date()


def format_time(value: time) -> str:
    """Formats a time of day as 'H:MM' for display."""
    return f"{value.hour}:{value.minute:02d}"


def is_on_granularity(value: time, minutes: int = 5) -> bool:
    """True when the minute component is a multiple of `minutes`."""
    return value.minute % minutes == 0
