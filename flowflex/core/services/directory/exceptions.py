class DirectoryError(Exception):
    """The directory service failed to answer a lookup."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DirectoryResponseError(DirectoryError):
    """The directory answered with a body that cannot be parsed or validated."""
