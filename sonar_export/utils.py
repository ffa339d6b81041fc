"""Small formatting helpers shared by the transformer and the templates."""

from datetime import datetime

DATE_FORMAT = "%m/%d/%Y, %I:%M:%S %p"

# SonarQube timestamps look like 2024-01-15T10:30:00+0000
_API_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f%z")

# Ampersand first, otherwise the entities introduced below get escaped again
_HTML_REPLACEMENTS = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#039;"),
)


def escape_html(text: str) -> str:
    for char, entity in _HTML_REPLACEMENTS:
        text = text.replace(char, entity)
    return text


def extract_filename(component: str) -> str:
    """Return the basename of a SonarQube component key.

    ``"my-project:src/main/java/Test.java"`` -> ``"Test.java"``. The project
    key prefix (everything up to the first colon) is dropped; a component
    without a colon is treated as a plain path.
    """
    _, sep, rest = component.partition(":")
    path = rest if sep else component
    filename = path.rsplit("/", 1)[-1]
    return filename or path or component


def parse_date(value: str) -> datetime:
    """Parse a SonarQube or ISO 8601 timestamp.

    Raises:
        ValueError: if *value* is not a recognised timestamp.
    """
    for fmt in _API_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_date(value: str | datetime) -> str:
    """Format a timestamp in the local timezone, e.g. ``01/15/2024, 10:30:00 AM``.

    Naive datetimes are taken as local time. Strings that cannot be parsed
    are returned unchanged.
    """
    if isinstance(value, str):
        try:
            value = parse_date(value)
        except ValueError:
            return value
    return value.astimezone().strftime(DATE_FORMAT)


def progress_bar(current: int, total: int, width: int = 30) -> str:
    """Render ``[=====     ] 5/10``."""
    filled = int(current / total * width) if total else width
    filled = max(0, min(filled, width))
    return f"[{'=' * filled}{' ' * (width - filled)}] {current}/{total}"
