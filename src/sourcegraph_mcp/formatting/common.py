from datetime import datetime

MARKDOWN_SPECIAL = "*_~`"


def escape_markdown(text: str) -> str:
    return "".join(f"\\{c}" if c in MARKDOWN_SPECIAL else c for c in text or "")


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_date(value: str | None) -> str:
    """Render an ISO timestamp as ``YYYY-MM-DD``, or return it unchanged."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return value or "Unknown"
    return parsed.strftime("%Y-%m-%d")


def format_datetime(value: str | None) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return value or "Unknown"
    return parsed.strftime("%Y-%m-%d %H:%M")


def format_file_size(num_bytes: int | None) -> str:
    if not num_bytes:
        return "0 Bytes"
    size = float(num_bytes)
    for unit in ("Bytes", "KB", "MB"):
        if size < 1024:
            return f"{round(size, 2):g} {unit}"
        size /= 1024
    return f"{round(size, 2):g} GB"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def first_line(text: str | None) -> str:
    return (text or "").strip().split("\n", 1)[0]
