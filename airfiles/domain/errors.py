"""Errors raised synchronously from server start-up."""


class AirFilesError(Exception):
    """Base class for failures reported to the embedding application."""


class AlreadyRunning(AirFilesError):
    """Raised when start() is called while the server is not stopped."""


class InvalidConfiguration(AirFilesError):
    """Raised when the configuration cannot be served as given."""


class BindError(AirFilesError):
    """Raised when the listening socket cannot be bound."""

    def __init__(self, address: str, port: int, reason: str) -> None:
        super().__init__(f"Unable to bind {address}:{port}: {reason}")
        self.address = address
        self.port = port
        self.reason = reason
