class SourcegraphMCPError(Exception):
    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.args[0]} (caused by: {self.cause})"
        return str(self.args[0])


class ConfigurationError(SourcegraphMCPError):
    pass


class UpstreamAPIError(SourcegraphMCPError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.status_code = status_code
        self.errors = errors or []


class UpstreamTimeoutError(UpstreamAPIError):
    pass


class TranslationError(SourcegraphMCPError):
    pass


class RoutingError(SourcegraphMCPError):
    pass


class NoActiveSessionsError(RoutingError):
    def __init__(self, message: str = "No active connections"):
        super().__init__(message)


class SessionNotFoundError(RoutingError):
    def __init__(self, session_id: str | None):
        if session_id:
            message = f"Session not found: {session_id}"
        else:
            message = "A sessionId is required in strict routing mode"
        super().__init__(message)
        self.session_id = session_id


class TransportError(SourcegraphMCPError):
    pass


class TransportClosedError(TransportError):
    pass


class ToolNotFoundError(SourcegraphMCPError):
    def __init__(self, name: str | None):
        super().__init__(f"Unknown tool: {name}")
        self.name = name
