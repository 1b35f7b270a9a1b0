"""
Helper functions for formatting data into human-readable strings.
"""

from mingw_dl.models.attributes import AttributeField, AttributeSet


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_date(published_at: str) -> str:
    """Returns the date part of an ISO timestamp, or '' when it is too short."""
    return published_at[:10] if len(published_at) >= 10 else ""


def release_label(tag: str, published_at: str) -> str:
    return f"{tag}  ({format_date(published_at)})"


def describe_attributes(attributes: AttributeSet) -> list[str]:
    """Returns the display value of every attribute field, '-' when unknown."""
    values = []
    for field in AttributeField:
        value = attributes.get(field)
        values.append("-" if value.name == "UNKNOWN" else value.value)
    return values
