class ChannelError(Exception):
    """The channel rejected a request or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None, detail: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ChannelTransportError(ChannelError):
    """Connection failure or timeout before a response was received."""


class ChannelResponseError(ChannelError):
    """The channel answered 2xx with a body we cannot use."""
