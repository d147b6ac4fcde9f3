from enum import Enum


class SearchType(str, Enum):
    FILE = "file"
    COMMIT = "commit"
    DIFF = "diff"

    @classmethod
    def from_value(cls, value: str | None, default: "SearchType | None" = None) -> "SearchType | None":
        if not value:
            return default
        try:
            return cls(value.lower())
        except ValueError:
            return default


class RoutingMode(str, Enum):
    STRICT = "strict"
    LENIENT = "lenient"


class SessionState(str, Enum):
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"
