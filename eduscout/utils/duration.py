"""Duration helpers — YouTube ISO-8601 periods and "H:MM:SS" display strings."""

import re

_ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


def parse_iso_duration(value: str | None) -> int:
    """Convert an ISO-8601 period ("PT1H2M3S") to seconds. Returns 0 if unparseable."""
    if not value:
        return 0
    match = _ISO_DURATION.match(value.strip().upper())
    if not match:
        return 0
    parts = {k: int(v) if v else 0 for k, v in match.groupdict().items()}
    return (
        parts["days"] * 86400
        + parts["hours"] * 3600
        + parts["minutes"] * 60
        + parts["seconds"]
    )


def format_duration(seconds: int) -> str:
    """Format seconds as "H:MM:SS" (with hours) or "M:SS"."""
    seconds = max(int(seconds), 0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def parse_display_duration(value: str | None) -> int:
    """Inverse of format_duration — "M:SS" or "H:MM:SS" to seconds, 0 otherwise."""
    if not value:
        return 0
    parts = value.strip().split(":")
    if not all(p.isdigit() for p in parts):
        return 0
    numbers = [int(p) for p in parts]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    return 0
